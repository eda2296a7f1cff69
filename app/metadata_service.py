"""
Metadata Service - provider registry access, metadata mapping and the merge engine.

Merge folds the game's own fields, then provider metadata from the lowest to the
highest registered priority, then the user override. A field only overwrites the
accumulated value when it is present (not None and not an empty list).
"""
from dataclasses import dataclass, field, fields as dataclass_fields
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog

from constants import MERGED_METADATA_SLUG, USER_METADATA_SLUG
from db import db
from exceptions import LibraryException, ProviderException, ValidationException
from filename_parser import generate_sort_title
from job_queue import MergeJobQueue
from metadata_providers import MetadataProvider, ProviderRegistry, ProviderRelation
from metrics import merges_total, provider_errors_total, relation_upsert_failures_total
from repositories.game_metadata_repository import GameMetadataRepository
from repositories.named_entity_repository import NamedEntityRepository, RELATION_MODELS
from services.games_service import GamesService
from utils import ensure_utc, now_utc, slugify

logger = structlog.get_logger('metadata_service')

RELATION_FIELDS = tuple(RELATION_MODELS)


class MergeOutcome:
    MERGED = "merged"
    SKIPPED = "skipped"  # Aggregate already fresh
    NOOP = "noop"  # No sources at all


@dataclass
class MergedMetadata:
    """Typed accumulator for the merge fold"""
    title: Optional[str] = None
    sort_title: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    release_date: Optional[datetime] = None
    age_rating: Optional[int] = None
    average_playtime: Optional[int] = None
    rating: Optional[float] = None
    early_access: Optional[bool] = None
    cover_url: Optional[str] = None
    background_url: Optional[str] = None
    url_websites: List[str] = field(default_factory=list)
    url_screenshots: List[str] = field(default_factory=list)
    url_trailers: List[str] = field(default_factory=list)
    url_gameplays: List[str] = field(default_factory=list)
    developers: List[ProviderRelation] = field(default_factory=list)
    publishers: List[ProviderRelation] = field(default_factory=list)
    genres: List[ProviderRelation] = field(default_factory=list)
    tags: List[ProviderRelation] = field(default_factory=list)

    @classmethod
    def from_game(cls, game):
        return cls(
            title=game.title,
            sort_title=game.sort_title,
            release_date=game.release_date,
            early_access=game.early_access,
        )

    def apply(self, source):
        """Overwrite every field the source has a present value for"""
        for item in dataclass_fields(self):
            value = getattr(source, item.name, None)
            if not is_present(value):
                continue
            if item.name in RELATION_FIELDS:
                value = [ProviderRelation(provider_data_id=None, name=relation.name) for relation in value]
            elif isinstance(value, list):
                value = list(value)
            setattr(self, item.name, value)
        return self

    def scalar_fields(self) -> Dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in dataclass_fields(self)
                if item.name not in RELATION_FIELDS}


SCALAR_FIELDS = tuple(name for name in MergedMetadata.__dataclass_fields__ if name not in RELATION_FIELDS)
USER_EDITABLE_FIELDS = tuple(name for name in MergedMetadata.__dataclass_fields__ if name != "sort_title")


def is_present(value):
    if value is None:
        return False
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return False
    return True


def relation_key(name):
    """Provider data id of a merged relation: kebab-case of its display name"""
    if name is None:
        return ''
    # Names made only of punctuation keep their lowercased form
    return slugify(name) or str(name).strip().lower()


class MetadataService:
    """Owns the provider registry and the merge job queue"""

    def __init__(self, app=None, registry: ProviderRegistry = None, job_queue: MergeJobQueue = None,
                 ttl_in_days: int = 30):
        self.app = app
        self.registry = registry or ProviderRegistry()
        self.job_queue = job_queue or MergeJobQueue(concurrency=1)
        self.ttl_in_days = ttl_in_days

    # Providers

    def register_provider(self, provider: MetadataProvider) -> MetadataProvider:
        return self.registry.register(provider)

    def get_provider_by_slug(self, slug: str) -> MetadataProvider:
        return self.registry.get_by_slug(slug)

    def search(self, query: str, provider_slug: str):
        provider = self.get_provider_by_slug(provider_slug)
        try:
            return provider.search(query)
        except ProviderException:
            provider_errors_total.labels(provider=provider.slug).inc()
            raise
        except Exception as e:
            provider_errors_total.labels(provider=provider.slug).inc()
            raise ProviderException(f"Search on '{provider.slug}' failed: {e}", slug=provider.slug) from e

    def _fetch(self, provider: MetadataProvider, provider_data_id: str):
        try:
            return provider.get_by_provider_data_id(provider_data_id)
        except LibraryException:
            raise
        except Exception as e:
            raise ProviderException(
                f"Fetching '{provider_data_id}' from '{provider.slug}' failed: {e}", slug=provider.slug
            ) from e

    # Merge

    def _is_fresh(self, game) -> bool:
        aggregate = game.merged_metadata
        if aggregate is None or aggregate.updated_at is None:
            return False
        merged_at = ensure_utc(aggregate.updated_at)
        for source in game.provider_metadata:
            updated_at = ensure_utc(source.updated_at)
            if updated_at is not None and updated_at > merged_at:
                return False
        return True

    def _ordered_sources(self, sources):
        """Provider metadata of registered providers, lowest priority first"""
        priorities = {provider.slug: provider.priority for provider in self.registry.providers}
        ordered = []
        for source in sources:
            if source.provider_slug not in priorities:
                logger.warning("Skipping metadata of unregistered provider", provider=source.provider_slug,
                               provider_data_id=source.provider_data_id)
                continue
            ordered.append(source)
        return sorted(ordered, key=lambda source: priorities[source.provider_slug])

    def _upsert_relations(self, merged: MergedMetadata) -> Dict[str, list]:
        """Upsert merged relations under the internal slug; a failed upsert drops only that relation"""
        result = {}
        for relation_field, model in RELATION_MODELS.items():
            unique = {}
            for relation in getattr(merged, relation_field):
                key = relation_key(relation.name)
                if not key:
                    logger.warning("Skipping relation without a name", relation=relation_field)
                    continue
                unique.setdefault(key, relation.name)

            rows = []
            for key, name in unique.items():
                try:
                    rows.append(NamedEntityRepository.upsert(model, MERGED_METADATA_SLUG, key, name))
                except Exception as e:
                    relation_upsert_failures_total.labels(relation=relation_field).inc()
                    logger.error("Relation upsert failed, omitting it", relation=relation_field, key=key,
                                 error=str(e))
            result[relation_field] = rows
        return result

    def merge(self, game_id: int):
        game = GamesService.get_by_id_or_fail(game_id)
        sources = list(game.provider_metadata)
        user_metadata = game.user_metadata

        if not sources and user_metadata is None:
            merges_total.labels(outcome=MergeOutcome.NOOP).inc()
            logger.debug("Nothing to merge", game_id=game.id)
            return game

        if user_metadata is None and self._is_fresh(game):
            merges_total.labels(outcome=MergeOutcome.SKIPPED).inc()
            logger.debug("Merged metadata is up to date", game_id=game.id)
            return game

        merged = MergedMetadata.from_game(game)
        for source in self._ordered_sources(sources):
            merged.apply(source)
        if user_metadata is not None:
            merged.apply(user_metadata)
        if merged.title:
            merged.sort_title = generate_sort_title(merged.title)

        relations = self._upsert_relations(merged)
        aggregate = GameMetadataRepository.upsert(
            MERGED_METADATA_SLUG, str(game.id), **merged.scalar_fields(), **relations
        )
        # Bumped even when no column changed so the freshness guard sees this merge
        aggregate.updated_at = now_utc()
        game.merged_metadata = aggregate
        GamesService.save(game)

        merges_total.labels(outcome=MergeOutcome.MERGED).inc()
        logger.info("Metadata merged", game_id=game.id, sources=[s.provider_slug for s in sources],
                    user_override=user_metadata is not None)
        return game

    def _delete_if_orphaned(self, metadata):
        if GameMetadataRepository.count_references(metadata) == 0:
            GameMetadataRepository.delete(metadata)

    def unmap(self, game_id: int, provider_slug: Optional[str]):
        """
        Detach metadata from a game without re-merging.
        "user" drops the user override, a provider slug drops that provider's
        metadata, None drops every source. The merged aggregate is always deleted.
        """
        game = GamesService.get_by_id_or_fail(game_id)
        removed = []

        if provider_slug in (USER_METADATA_SLUG, None) and game.user_metadata is not None:
            removed.append(game.user_metadata)
            game.user_metadata = None

        if provider_slug != USER_METADATA_SLUG:
            detached = [m for m in game.provider_metadata if provider_slug is None or m.provider_slug == provider_slug]
            for metadata in detached:
                game.provider_metadata.remove(metadata)
            removed.extend(detached)

        aggregate = game.merged_metadata
        game.merged_metadata = None

        try:
            db.session.flush()
            for metadata in removed:
                self._delete_if_orphaned(metadata)
            if aggregate is not None:
                GameMetadataRepository.delete(aggregate)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info("Metadata unmapped", game_id=game.id, provider=provider_slug or "*",
                    removed=[f"{m.provider_slug}:{m.provider_data_id}" for m in removed])
        return game

    # Mapping

    def _upsert_source_relations(self, provider_slug: str, data) -> Dict[str, list]:
        result = {}
        for relation_field, model in RELATION_MODELS.items():
            rows = []
            seen = set()
            for relation in getattr(data, relation_field, None) or []:
                key = str(relation.provider_data_id) if relation.provider_data_id else relation_key(relation.name)
                if not key or key in seen:
                    continue
                seen.add(key)
                try:
                    rows.append(NamedEntityRepository.upsert(model, provider_slug, key, relation.name))
                except Exception as e:
                    relation_upsert_failures_total.labels(relation=relation_field).inc()
                    logger.error("Relation upsert failed, omitting it", provider=provider_slug,
                                 relation=relation_field, key=key, error=str(e))
            result[relation_field] = rows
        return result

    def store_provider_metadata(self, provider_slug: str, data):
        """Upsert a provider's view of a title by natural key (flushed, not committed)"""
        relations = self._upsert_source_relations(provider_slug, data)
        metadata = GameMetadataRepository.upsert(
            provider_slug,
            data.provider_data_id,
            sort_title=generate_sort_title(data.title),
            **data.scalar_fields(),
            **relations,
        )
        metadata.updated_at = now_utc()
        db.session.flush()
        return metadata

    def _attach(self, game, metadata):
        """Replace whatever metadata the same provider had on the game"""
        previous = [m for m in game.provider_metadata
                    if m.provider_slug == metadata.provider_slug and m.id != metadata.id]
        for old in previous:
            game.provider_metadata.remove(old)
        if metadata not in game.provider_metadata:
            game.provider_metadata.append(metadata)
        db.session.flush()
        for old in previous:
            self._delete_if_orphaned(old)

    def map(self, game_id: int, provider_slug: str, provider_data_id: str):
        game = GamesService.get_by_id_or_fail(game_id)
        provider = self.get_provider_by_slug(provider_slug)
        data = self._fetch(provider, provider_data_id)
        try:
            metadata = self.store_provider_metadata(provider.slug, data)
            self._attach(game, metadata)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info("Game mapped", game_id=game.id, provider=provider.slug, provider_data_id=provider_data_id)
        return self.merge(game.id)

    def set_user_metadata(self, game_id: int, fields: Dict[str, Any]):
        """
        Create or update the user override of a game, then merge.
        Relation fields take a list of display names.
        """
        unknown = sorted(set(fields) - set(USER_EDITABLE_FIELDS))
        if unknown:
            raise ValidationException(f"Unknown metadata fields: {', '.join(unknown)}")

        game = GamesService.get_by_id_or_fail(game_id)
        scalars = {key: value for key, value in fields.items() if key not in RELATION_FIELDS}
        if scalars.get("title"):
            scalars["sort_title"] = generate_sort_title(scalars["title"])

        try:
            relations = {}
            for relation_field in RELATION_FIELDS:
                if relation_field not in fields:
                    continue
                model = RELATION_MODELS[relation_field]
                keys = {}
                for name in fields[relation_field] or []:
                    key = relation_key(name)
                    if not key:
                        raise ValidationException(f"Blank name in user metadata field '{relation_field}'")
                    keys.setdefault(key, name)
                relations[relation_field] = [
                    NamedEntityRepository.upsert(model, USER_METADATA_SLUG, key, name) for key, name in keys.items()
                ]

            metadata = GameMetadataRepository.upsert(USER_METADATA_SLUG, str(game.id), **scalars, **relations)
            metadata.updated_at = now_utc()
            game.user_metadata = metadata
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info("User metadata updated", game_id=game.id, fields=sorted(fields))
        return self.merge(game.id)

    # Jobs

    def _is_stale(self, metadata) -> bool:
        updated_at = ensure_utc(metadata.updated_at)
        return updated_at is None or updated_at < now_utc() - timedelta(days=self.ttl_in_days)

    def _refresh_from_provider(self, game, provider: MetadataProvider):
        attached = [m for m in game.provider_metadata if m.provider_slug == provider.slug]
        if attached:
            for metadata in attached:
                if not self._is_stale(metadata):
                    continue
                logger.debug("Refreshing stale metadata", game_id=game.id, provider=provider.slug)
                data = self._fetch(provider, metadata.provider_data_id)
                # The provider may answer with a different canonical id
                self._attach(game, self.store_provider_metadata(provider.slug, data))
            return

        data = provider.get_best_match(game)
        if data is None:
            return
        metadata = self.store_provider_metadata(provider.slug, data)
        self._attach(game, metadata)
        logger.info("Game auto-mapped", game_id=game.id, provider=provider.slug,
                    provider_data_id=data.provider_data_id)

    def process_game(self, game_id: int):
        """Merge job body: refresh provider metadata past its TTL, auto-map missing providers, merge"""
        game = GamesService.get_by_id_or_fail(game_id)
        if game.deleted_at is not None:
            logger.debug("Skipping metadata job for deleted game", game_id=game.id)
            return game

        for provider in self.registry.enabled():
            try:
                self._refresh_from_provider(game, provider)
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                provider_errors_total.labels(provider=provider.slug).inc()
                logger.error("Metadata provider failed for game", game_id=game_id, provider=provider.slug,
                             error=str(e))

        return self.merge(game_id)

    def _run_job(self, game_id: int):
        with self.app.app_context():
            self.process_game(game_id)

    def add_merge_job(self, game) -> bool:
        """Queue a metadata job for the game unless one is already queued or running"""
        game_id = game.id if hasattr(game, "id") else int(game)
        return self.job_queue.add(game_id, lambda: self._run_job(game_id))

    def shutdown(self):
        self.job_queue.shutdown(wait=True)
