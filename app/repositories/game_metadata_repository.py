"""
Repository for GameMetadata database operations
"""

from sqlalchemy.exc import SQLAlchemyError
from db import db
from models.games import Game, game_provider_metadata
from models.game_metadata import GameMetadata

RELATION_FIELDS = ("developers", "publishers", "genres", "tags")


class GameMetadataRepository:
    """Repository for GameMetadata database operations"""

    @staticmethod
    def get_by_natural_key(provider_slug, provider_data_id):
        return GameMetadata.query.filter_by(
            provider_slug=provider_slug, provider_data_id=str(provider_data_id)
        ).first()

    @staticmethod
    def upsert(provider_slug, provider_data_id, **fields):
        """
        Create or update the record identified by (provider_slug, provider_data_id).

        Scalar fields and relation lists (developers, publishers, genres, tags)
        are assigned as given. Changes are flushed, not committed.
        """
        item = GameMetadataRepository.get_by_natural_key(provider_slug, provider_data_id)
        if item is None:
            item = GameMetadata(provider_slug=provider_slug, provider_data_id=str(provider_data_id))
            db.session.add(item)

        for key, value in fields.items():
            if key in RELATION_FIELDS:
                setattr(item, key, list(value or []))
            elif hasattr(GameMetadata, key) and key not in ("id", "provider_slug", "provider_data_id"):
                setattr(item, key, value)

        try:
            db.session.flush()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e
        return item

    @staticmethod
    def count_references(item):
        """Number of games pointing at this record in any role"""
        linked = db.session.query(game_provider_metadata).filter(
            game_provider_metadata.c.game_metadata_id == item.id
        ).count()
        owned = Game.query.filter(
            db.or_(Game.metadata_id == item.id, Game.user_metadata_id == item.id)
        ).count()
        return linked + owned

    @staticmethod
    def delete(item):
        """Delete GameMetadata record (flushed, not committed)"""
        if item is None:
            return False
        db.session.delete(item)
        db.session.flush()
        return True

    @staticmethod
    def count(provider_slug=None):
        query = GameMetadata.query
        if provider_slug:
            query = query.filter_by(provider_slug=provider_slug)
        return query.count()
