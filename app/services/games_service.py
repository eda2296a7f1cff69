"""
Games Service - catalog operations consumed by the reconciler and the serving layer
"""
import os

import structlog
from typing import Optional, Tuple

from db import Game
from existence import GameCandidate, classify
from exceptions import NotFoundException
from filename_parser import generate_sort_title
from repositories.games_repository import GamesRepository
from utils import now_utc

logger = structlog.get_logger('games_service')


class GamesService:
    """Catalog operations over the games table"""

    @staticmethod
    def find_by_path(file_path: str, include_deleted: bool = False) -> Optional[Game]:
        return GamesRepository.get_by_path(file_path, include_deleted=include_deleted)

    @staticmethod
    def get_by_id_or_fail(game_id: int) -> Game:
        game = GamesRepository.get_by_id(game_id)
        if game is None:
            raise NotFoundException(f"Game with id {game_id} was not found")
        return game

    @staticmethod
    def check_existence(candidate: GameCandidate) -> Tuple[str, Optional[Game]]:
        """Look the candidate up by path and by (title, release date), then classify it"""
        match_by_path = None
        match_by_title = None
        if candidate.file_path:
            match_by_path = GamesRepository.get_by_path(candidate.file_path, include_deleted=True)
        if match_by_path is None and candidate.title:
            match_by_title = GamesService._find_moved_game(candidate)
        return classify(candidate, match_by_path, match_by_title)

    @staticmethod
    def _find_moved_game(candidate: GameCandidate) -> Optional[Game]:
        """
        A (title, release date) match only counts when the game's own file is gone:
        either the row is soft-deleted or its path no longer exists on disk.
        An active game whose file is still there is a second copy, not a move.
        """
        for game in GamesRepository.find_by_title_and_release_date(candidate.title, candidate.release_date):
            if game.deleted_at is not None or not os.path.exists(game.file_path):
                return game
        return None

    @staticmethod
    def create(candidate: GameCandidate) -> Game:
        game = GamesRepository.create(
            file_path=candidate.file_path,
            title=candidate.title,
            sort_title=candidate.sort_title or generate_sort_title(candidate.title),
            size=candidate.size,
            version=candidate.version,
            release_date=candidate.release_date,
            type=candidate.type,
            early_access=candidate.early_access,
        )
        logger.info("Game created", game_id=game.id, file_path=game.file_path)
        return game

    @staticmethod
    def update(game: Game, **fields) -> Game:
        for key, value in fields.items():
            setattr(game, key, value)
        if 'title' in fields:
            game.sort_title = generate_sort_title(game.title)
        GamesRepository.save(game)
        logger.info("Game updated", game_id=game.id, fields=sorted(fields))
        return game

    @staticmethod
    def save(game: Game) -> Game:
        return GamesRepository.save(game)

    @staticmethod
    def soft_delete(game: Game) -> Game:
        if game.deleted_at is None:
            game.deleted_at = now_utc()
            GamesRepository.save(game)
            logger.info("Game soft-deleted", game_id=game.id, file_path=game.file_path)
        return game

    @staticmethod
    def restore(game: Game, **fields) -> Game:
        """Clear the soft delete; fields are applied in the same commit so the active path stays unique"""
        for key, value in fields.items():
            setattr(game, key, value)
        if 'title' in fields:
            game.sort_title = generate_sort_title(game.title)
        game.deleted_at = None
        GamesRepository.save(game)
        logger.info("Game restored", game_id=game.id, file_path=game.file_path)
        return game

