"""
Existence classification of a scanned file against the catalog. Pure, no I/O.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from exceptions import GameClassificationException
from utils import ensure_utc


class GameExistence:
    DOES_NOT_EXIST = 'DOES_NOT_EXIST'
    EXISTS = 'EXISTS'
    EXISTS_BUT_ALTERED = 'EXISTS_BUT_ALTERED'
    EXISTS_BUT_DELETED_IN_DATABASE = 'EXISTS_BUT_DELETED_IN_DATABASE'

    ALL = (DOES_NOT_EXIST, EXISTS, EXISTS_BUT_ALTERED, EXISTS_BUT_DELETED_IN_DATABASE)


TRACKED_FIELDS = ('file_path', 'title', 'release_date', 'size', 'version', 'type', 'early_access')


@dataclass
class GameCandidate:
    """A game as derived from one file on disk"""
    file_path: str
    title: str
    sort_title: str = ''
    size: int = 0
    version: Optional[str] = None
    release_date: Optional[datetime] = None
    type: Optional[str] = None
    early_access: bool = False

    def tracked_values(self):
        return {field: getattr(self, field) for field in TRACKED_FIELDS}


def _normalize(field, value):
    if field == 'release_date':
        return ensure_utc(value)
    if field == 'early_access':
        return bool(value)
    if field == 'size':
        return int(value or 0)
    return value


def differing_fields(candidate, game):
    """Tracked fields whose candidate value differs from the cataloged one"""
    changes = {}
    for field in TRACKED_FIELDS:
        new_value = _normalize(field, getattr(candidate, field))
        if new_value != _normalize(field, getattr(game, field, None)):
            changes[field] = getattr(candidate, field)
    return changes


def classify(candidate, match_by_path=None, match_by_title=None):
    """
    Returns (GameExistence state, matched game or None).
    A match by path takes precedence over a match by (title, release date).
    """
    if not candidate.file_path:
        raise GameClassificationException("Game has no file path", file_path=candidate.file_path)
    if not candidate.title:
        raise GameClassificationException("Game has no title", file_path=candidate.file_path)

    matched = match_by_path or match_by_title
    if matched is None:
        return GameExistence.DOES_NOT_EXIST, None

    if matched.deleted_at is not None:
        return GameExistence.EXISTS_BUT_DELETED_IN_DATABASE, matched

    if differing_fields(candidate, matched):
        return GameExistence.EXISTS_BUT_ALTERED, matched

    return GameExistence.EXISTS, matched
