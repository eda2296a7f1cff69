"""
Model: GameMetadata
Provider metadata, user overrides and the merged aggregate share this table;
provider_slug tells them apart ("user" and "ludoteca" are reserved).
"""

from db import db, now_utc


def _relation_table(name, column, target):
    return db.Table(
        name,
        db.Column("game_metadata_id", db.Integer, db.ForeignKey("game_metadata.id", ondelete="CASCADE"), primary_key=True),
        db.Column(column, db.Integer, db.ForeignKey(f"{target}.id", ondelete="CASCADE"), primary_key=True),
    )


game_metadata_developers = _relation_table("game_metadata_developers", "developer_id", "developers")
game_metadata_publishers = _relation_table("game_metadata_publishers", "publisher_id", "publishers")
game_metadata_genres = _relation_table("game_metadata_genres", "genre_id", "genres")
game_metadata_tags = _relation_table("game_metadata_tags", "tag_id", "tags")


class GameMetadata(db.Model):
    __tablename__ = "game_metadata"

    id = db.Column(db.Integer, primary_key=True)
    provider_slug = db.Column(db.String(50), nullable=False, index=True)
    provider_data_id = db.Column(db.String(255), nullable=False)

    title = db.Column(db.String)
    sort_title = db.Column(db.String)
    description = db.Column(db.Text)
    notes = db.Column(db.Text)
    release_date = db.Column(db.DateTime)
    age_rating = db.Column(db.Integer)  # Minimum age
    average_playtime = db.Column(db.Integer)  # Minutes
    rating = db.Column(db.Float)  # 0-100
    early_access = db.Column(db.Boolean)
    cover_url = db.Column(db.String)
    background_url = db.Column(db.String)
    url_websites = db.Column(db.JSON)
    url_screenshots = db.Column(db.JSON)
    url_trailers = db.Column(db.JSON)
    url_gameplays = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    developers = db.relationship("Developer", secondary=game_metadata_developers, lazy="selectin")
    publishers = db.relationship("Publisher", secondary=game_metadata_publishers, lazy="selectin")
    genres = db.relationship("Genre", secondary=game_metadata_genres, lazy="selectin")
    tags = db.relationship("Tag", secondary=game_metadata_tags, lazy="selectin")

    __table_args__ = (
        db.UniqueConstraint("provider_slug", "provider_data_id", name="uq_game_metadata_natural_key"),
    )

    def __repr__(self):
        return f"<GameMetadata {self.provider_slug}:{self.provider_data_id}>"
