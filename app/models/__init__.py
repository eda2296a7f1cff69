"""
Models package

Catalog and metadata models:
- games.py: Game (one indexed game file)
- game_metadata.py: GameMetadata (provider, user and merged metadata)
- named_entities.py: Developer, Publisher, Genre, Tag

You can also import them from db.py:
    from db import Game, GameMetadata
"""

from .games import Game, game_provider_metadata
from .game_metadata import (
    GameMetadata,
    game_metadata_developers,
    game_metadata_publishers,
    game_metadata_genres,
    game_metadata_tags,
)
from .named_entities import Developer, Publisher, Genre, Tag

__all__ = [
    "Game",
    "game_provider_metadata",
    "GameMetadata",
    "game_metadata_developers",
    "game_metadata_publishers",
    "game_metadata_genres",
    "game_metadata_tags",
    "Developer",
    "Publisher",
    "Genre",
    "Tag",
]
