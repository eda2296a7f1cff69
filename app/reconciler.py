"""
Reconciler - applies existence classifications to the catalog.

| state                          | action                               | merge job |
| DOES_NOT_EXIST                 | create                               | yes       |
| EXISTS                         | nothing                              | no        |
| EXISTS_BUT_ALTERED             | update differing fields              | yes       |
| EXISTS_BUT_DELETED_IN_DATABASE | restore and apply candidate fields   | yes       |
"""
from dataclasses import dataclass
import logging
from typing import Optional

from existence import GameCandidate, GameExistence, differing_fields
from metrics import files_reconciled_total, games_removed_total
from services.games_service import GamesService

logger = logging.getLogger("main")


@dataclass
class ReconcileResult:
    state: str
    game: Optional[object] = None
    merge_job_queued: bool = False


class Reconciler:
    def __init__(self, metadata_service):
        self.metadata_service = metadata_service

    def reconcile(self, candidate: GameCandidate) -> ReconcileResult:
        state, matched = GamesService.check_existence(candidate)

        if state == GameExistence.EXISTS:
            logger.debug(f"Game {matched.id} is unchanged: {candidate.file_path}")
            files_reconciled_total.labels(state=state).inc()
            return ReconcileResult(state=state, game=matched)

        if state == GameExistence.DOES_NOT_EXIST:
            game = GamesService.create(candidate)
            logger.info(f"Added game {game.id}: {candidate.file_path}")
        elif state == GameExistence.EXISTS_BUT_ALTERED:
            changes = differing_fields(candidate, matched)
            game = GamesService.update(matched, **changes)
            logger.info(f"Updated game {game.id} ({', '.join(sorted(changes))}): {candidate.file_path}")
        elif state == GameExistence.EXISTS_BUT_DELETED_IN_DATABASE:
            game = GamesService.restore(matched, **differing_fields(candidate, matched))
            logger.info(f"Restored game {game.id}: {candidate.file_path}")
        else:
            raise ValueError(f"Unknown existence state: {state}")

        files_reconciled_total.labels(state=state).inc()
        queued = self.metadata_service.add_merge_job(game)
        return ReconcileResult(state=state, game=game, merge_job_queued=queued)

    def remove(self, game) -> ReconcileResult:
        """The game's file is gone: soft-delete it and detach all of its metadata"""
        GamesService.soft_delete(game)
        self.metadata_service.unmap(game.id, None)
        games_removed_total.inc()
        logger.info(f"Removed game {game.id}, file no longer exists: {game.file_path}")
        return ReconcileResult(state=GameExistence.DOES_NOT_EXIST, game=game)
