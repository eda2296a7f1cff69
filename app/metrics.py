from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from flask import Response
import logging

logger = logging.getLogger("main")

# Library Metrics
library_games_total = Gauge("ludoteca_library_games_total", "Total number of non-deleted games")

library_games_deleted = Gauge("ludoteca_library_games_deleted", "Number of soft-deleted games")

library_games_with_metadata = Gauge("ludoteca_library_games_with_metadata", "Number of games with merged metadata")

# Reconciliation Metrics
files_reconciled_total = Counter("ludoteca_files_reconciled_total", "Total files reconciled", ["state"])

scan_errors_total = Counter("ludoteca_scan_errors_total", "Files that failed to reconcile during a scan")

scan_duration_seconds = Histogram("ludoteca_scan_duration_seconds", "Duration of full library scans")

games_removed_total = Counter("ludoteca_games_removed_total", "Games soft-deleted because their file disappeared")

# Metadata Metrics
merges_total = Counter("ludoteca_metadata_merges_total", "Metadata merges by outcome", ["outcome"])

relation_upsert_failures_total = Counter(
    "ludoteca_relation_upsert_failures_total", "Relation upserts that failed during a merge", ["relation"]
)

provider_errors_total = Counter("ludoteca_provider_errors_total", "Failed metadata provider calls", ["provider"])

pending_merge_jobs = Gauge("ludoteca_pending_merge_jobs", "Merge jobs queued or running")

ACTIVE_SCANS = Gauge("ludoteca_active_scans", "Number of active library scans")


class ActiveScanTracker:
    """Context manager for tracking active scans.

    Example:
        with ACTIVE_SCANS.track_inprogress():
            perform_scan()
    """

    def __enter__(self):
        ACTIVE_SCANS.inc()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        ACTIVE_SCANS.dec()
        return False


ACTIVE_SCANS.track_inprogress = ActiveScanTracker


def init_metrics(app):
    @app.route("/api/metrics")
    def metrics():
        update_library_metrics()
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    logger.info("Prometheus metrics initialized at /api/metrics")


def update_library_metrics():
    """Update library-related gauges from the catalog."""
    from db import Game

    library_games_total.set(Game.query.filter(Game.deleted_at.is_(None)).count())
    library_games_deleted.set(Game.query.filter(Game.deleted_at.isnot(None)).count())
    library_games_with_metadata.set(
        Game.query.filter(Game.deleted_at.is_(None), Game.metadata_id.isnot(None)).count()
    )
