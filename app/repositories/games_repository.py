"""
Repository for Game database operations
"""

from sqlalchemy.exc import SQLAlchemyError
from db import db
from models.games import Game


class GamesRepository:
    """Repository for Game database operations"""

    @staticmethod
    def get_by_id(id):
        """Get Game by ID (soft-deleted rows included)"""
        return db.session.get(Game, id)

    @staticmethod
    def get_by_path(file_path, include_deleted=False):
        """Get Game by exact file path; an active row wins over soft-deleted ones"""
        query = Game.query.filter(Game.file_path == file_path)
        if not include_deleted:
            return query.filter(Game.deleted_at.is_(None)).first()
        return query.order_by(Game.deleted_at.isnot(None), Game.deleted_at.desc(), Game.id.desc()).first()

    @staticmethod
    def find_by_title_and_release_date(title, release_date):
        """Games with this (title, release date); active rows first"""
        query = Game.query.filter(Game.title == title)
        if release_date is None:
            query = query.filter(Game.release_date.is_(None))
        else:
            query = query.filter(Game.release_date == release_date)
        return query.order_by(Game.deleted_at.isnot(None), Game.deleted_at.desc(), Game.id.desc()).all()

    @staticmethod
    def get_active_paths():
        """Map of file path -> game id for every non-deleted game"""
        rows = db.session.query(Game.file_path, Game.id).filter(Game.deleted_at.is_(None)).all()
        return {path: game_id for path, game_id in rows}

    @staticmethod
    def create(**kwargs):
        """Create new Game record"""
        try:
            item = Game(**kwargs)
            db.session.add(item)
            db.session.commit()
            db.session.refresh(item)
            return item
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e

    @staticmethod
    def save(item):
        """Persist pending changes of an attached (or new) Game"""
        try:
            db.session.add(item)
            db.session.commit()
            return item
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e

