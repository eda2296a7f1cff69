"""
Model: Game
One indexed game file and its derived/merged state.
"""

from db import db, now_utc
from constants import GAME_TYPE_UNDETECTABLE

# Provider metadata attached to a game (a provider record may be shared by several games)
game_provider_metadata = db.Table(
    "game_provider_metadata",
    db.Column("game_id", db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), primary_key=True),
    db.Column("game_metadata_id", db.Integer, db.ForeignKey("game_metadata.id", ondelete="CASCADE"), primary_key=True),
)


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)
    file_path = db.Column(db.String, nullable=False)
    size = db.Column(db.BigInteger, default=0)
    version = db.Column(db.String)  # Parsed from "(v1.2.3)"
    title = db.Column(db.String, nullable=False)
    sort_title = db.Column(db.String, index=True)
    release_date = db.Column(db.DateTime)  # January 1st of the year parsed from "(2023)"
    type = db.Column(db.String(32), default=GAME_TYPE_UNDETECTABLE)
    early_access = db.Column(db.Boolean, default=False)
    download_count = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)
    deleted_at = db.Column(db.DateTime)  # Soft delete

    # Merged metadata ("metadata" is reserved by SQLAlchemy)
    metadata_id = db.Column(db.Integer, db.ForeignKey("game_metadata.id", ondelete="SET NULL"))
    user_metadata_id = db.Column(db.Integer, db.ForeignKey("game_metadata.id", ondelete="SET NULL"))

    merged_metadata = db.relationship("GameMetadata", foreign_keys=[metadata_id], lazy="joined")
    user_metadata = db.relationship("GameMetadata", foreign_keys=[user_metadata_id], lazy="joined")
    provider_metadata = db.relationship("GameMetadata", secondary=game_provider_metadata, lazy="selectin")

    __table_args__ = (
        # A path is unique among non-deleted games only; a soft-deleted game may share it
        db.Index(
            "uq_games_active_file_path",
            "file_path",
            unique=True,
            sqlite_where=db.text("deleted_at IS NULL"),
            postgresql_where=db.text("deleted_at IS NULL"),
        ),
        db.Index("idx_games_title_release_date", "title", "release_date"),
    )

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def __repr__(self):
        return f"<Game id={self.id} path={self.file_path!r}>"
