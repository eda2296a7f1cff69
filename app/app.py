"""
Ludoteca - self-hosted game library
Application factory and initialization
"""
import atexit
import copy
import logging
import os
import sys

import structlog
from flask import Flask

from constants import *
from settings import load_settings, get_censored_settings, verify_settings
from db import db, init_db
from utils import ColoredFormatter, debounce
from file_watcher import Watcher
from jobs.scheduler import IndexingScheduler
from job_queue import MergeJobQueue
from library import LibraryIndexer
from metadata_service import MetadataService
from metrics import init_metrics
from providers import IGDBProvider, RAWGProvider
from reconciler import Reconciler

logger = logging.getLogger('main')

# Seconds of quiet after the last file event before a rescan
WATCHER_DEBOUNCE_SECONDS = 2


def configure_logging(level="info"):
    """Colored stdlib logging on stdout plus structlog (JSON when LOG_FORMAT=json)"""
    formatter = ColoredFormatter(
        '[%(asctime)s.%(msecs)03d] %(levelname)s (%(module)s) %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if os.environ.get('LOG_FORMAT') == 'json' else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.getLogger('apscheduler').setLevel(logging.WARNING)


def register_providers(metadata_service, settings):
    """Construct the configured providers; a provider without credentials is not registered"""
    metadata_settings = settings.get('metadata', {})

    igdb = metadata_settings.get('igdb', {})
    if igdb.get('client_id') and igdb.get('client_secret'):
        metadata_service.register_provider(IGDBProvider(
            client_id=igdb['client_id'],
            client_secret=igdb['client_secret'],
            priority=igdb.get('priority', 10),
            enabled=igdb.get('enabled', True),
            request_interval_ms=igdb.get('request_interval_ms', 250),
        ))
    else:
        logger.info("IGDB credentials not configured, provider not registered")

    rawg = metadata_settings.get('rawg', {})
    if rawg.get('api_key'):
        metadata_service.register_provider(RAWGProvider(
            api_key=rawg['api_key'],
            priority=rawg.get('priority', 5),
            enabled=rawg.get('enabled', True),
            request_interval_ms=rawg.get('request_interval_ms', 500),
        ))
    else:
        logger.info("RAWG API key not configured, provider not registered")


def create_app(settings=None, register_default_providers=True):
    """Application factory; `settings` replaces the loaded configuration (tests)"""
    if settings is None:
        settings = load_settings()
    settings = copy.deepcopy(settings)

    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = settings.get('database', {}).get('uri') or LUDOTECA_DB
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['LUDOTECA_SETTINGS'] = settings

    db.init_app(app)
    init_db(app)
    init_metrics(app)

    metadata_settings = settings['metadata']
    merge_queue = MergeJobQueue(concurrency=metadata_settings.get('merge_concurrency', 1))
    app.metadata_service = MetadataService(
        app=app,
        job_queue=merge_queue,
        ttl_in_days=metadata_settings.get('ttl_in_days', 30),
    )
    if register_default_providers:
        register_providers(app.metadata_service, settings)

    app.reconciler = Reconciler(app.metadata_service)
    app.indexer = LibraryIndexer(app, settings, app.reconciler)

    games = settings['games']
    app.watcher = Watcher(
        on_library_change(app),
        games['supported_file_formats'],
        use_polling=games.get('index_use_polling', False),
    )
    app.watcher.add_directory(games['path'], recursive=games.get('search_recursive', True))

    app.indexing_scheduler = IndexingScheduler(
        app.indexer,
        interval_in_minutes=games.get('index_interval_in_minutes', 60),
        watcher=app.watcher,
        merge_queue=merge_queue,
    )
    return app


def on_library_change(app):
    """Watcher callback: collapse bursts of file events into one rescan"""
    @debounce(WATCHER_DEBOUNCE_SECONDS)
    def trigger_rescan():
        app.indexing_scheduler.trigger_async()

    def callback(events):
        for event in events:
            logger.info(f"Library change ({event.type}): {event.dest_path or event.src_path}")
        trigger_rescan()

    return callback


def main():
    settings = load_settings()
    configure_logging(settings.get('server', {}).get('log_level', 'info'))
    logger.info(f"Configuration: {get_censored_settings(settings)}")

    _, errors = verify_settings(settings)
    for error in errors:
        logger.warning(f"Configuration problem at {error['path']}: {error['error']}")

    app = create_app(settings)
    app.indexing_scheduler.start(run_at_startup=True)
    atexit.register(app.indexing_scheduler.shutdown)

    logger.info('Starting server on port 8465...')
    app.run(host="0.0.0.0", port=8465, debug=False, use_reloader=False)


if __name__ == '__main__':
    main()
