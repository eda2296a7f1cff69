"""
Models: Developer, Publisher, Genre, Tag
Natural key is (provider_slug, provider_data_id); rows are only ever upserted by that key.
"""

from sqlalchemy.orm import declared_attr
from db import db, now_utc


class NamedEntityMixin:
    id = db.Column(db.Integer, primary_key=True)
    provider_slug = db.Column(db.String(50), nullable=False)
    provider_data_id = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    @declared_attr
    def __table_args__(cls):
        return (
            db.UniqueConstraint("provider_slug", "provider_data_id", name=f"uq_{cls.__tablename__}_natural_key"),
        )

    @property
    def natural_key(self):
        return (self.provider_slug, self.provider_data_id)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.provider_slug}:{self.provider_data_id} {self.name!r}>"


class Developer(NamedEntityMixin, db.Model):
    __tablename__ = "developers"


class Publisher(NamedEntityMixin, db.Model):
    __tablename__ = "publishers"


class Genre(NamedEntityMixin, db.Model):
    __tablename__ = "genres"


class Tag(NamedEntityMixin, db.Model):
    __tablename__ = "tags"
