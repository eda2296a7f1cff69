"""
Repository for Developer / Publisher / Genre / Tag database operations
Upsert by natural key is the only write path.
"""

from sqlalchemy.exc import IntegrityError
from db import db
from models.named_entities import Developer, Publisher, Genre, Tag

# GameMetadata relation attribute -> model
RELATION_MODELS = {
    "developers": Developer,
    "publishers": Publisher,
    "genres": Genre,
    "tags": Tag,
}


class NamedEntityRepository:
    """Repository for NamedEntity database operations"""

    @staticmethod
    def get_by_natural_key(model, provider_slug, provider_data_id):
        return model.query.filter_by(
            provider_slug=provider_slug, provider_data_id=str(provider_data_id)
        ).first()

    @staticmethod
    def upsert(model, provider_slug, provider_data_id, name):
        """
        Insert or rename the row identified by (provider_slug, provider_data_id).
        Runs inside a SAVEPOINT so a failure leaves the surrounding transaction usable.
        """
        provider_data_id = str(provider_data_id)
        try:
            with db.session.begin_nested():
                item = NamedEntityRepository.get_by_natural_key(model, provider_slug, provider_data_id)
                if item is None:
                    item = model(provider_slug=provider_slug, provider_data_id=provider_data_id, name=name)
                    db.session.add(item)
                elif item.name != name:
                    item.name = name
            return item
        except IntegrityError:
            # Inserted concurrently by another worker
            item = NamedEntityRepository.get_by_natural_key(model, provider_slug, provider_data_id)
            if item is None:
                raise
            return item

