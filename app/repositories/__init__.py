"""
Repositories package
Separate database queries from models

Each repository encapsulates database operations for a model:
- games_repository.py
- game_metadata_repository.py
- named_entity_repository.py

Usage:
    from repositories.games_repository import GamesRepository
    game = GamesRepository.get_by_id(1)
"""
