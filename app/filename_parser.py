"""
Filename parsing: title, version, release year, early access and type override
from names like "Some Game (2023) (v1.2.3) (EA) (W_P).zip". No I/O.
"""
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from constants import GAME_TYPE_OVERRIDES

PARENTHETICAL_RE = re.compile(r'\(([^()]*)\)')
YEAR_RE = re.compile(r'^\d{4}$')
VERSION_RE = re.compile(r'^v[0-9A-Za-z]+(?:[.\-][0-9A-Za-z]+)*$')
EARLY_ACCESS_TOKEN = 'EA'
LEADING_ARTICLE_RE = re.compile(r'^(?:the|a|an)\s+')
INVALID_PATH_CHARS_RE = re.compile(r'[<>:"|?*\x00-\x1f]')


@dataclass(frozen=True)
class ParsedFilename:
    title: str
    version: Optional[str] = None
    release_date: Optional[datetime] = None
    early_access: bool = False
    type_override: Optional[str] = None


def _groups(name):
    return [group.strip() for group in PARENTHETICAL_RE.findall(name)]


def parse_release_date(name):
    for group in _groups(name):
        if YEAR_RE.match(group):
            return datetime(int(group), 1, 1, tzinfo=timezone.utc)
    return None


def parse_version(name):
    for group in _groups(name):
        if VERSION_RE.match(group):
            return group
    return None


def parse_early_access(name):
    return EARLY_ACCESS_TOKEN in _groups(name)


def parse_type_override(name):
    for group in _groups(name):
        if group in GAME_TYPE_OVERRIDES:
            return GAME_TYPE_OVERRIDES[group]
    return None


def parse_title(name):
    title = PARENTHETICAL_RE.sub(' ', name)
    # Unbalanced leftovers like "Game (v1" are not part of a title either
    title = re.sub(r'[()]', ' ', title)
    return re.sub(r'\s+', ' ', title).strip()


def strip_extension(filename):
    return os.path.splitext(os.path.basename(filename))[0]


def parse_filename(filename) -> ParsedFilename:
    name = strip_extension(filename)
    return ParsedFilename(
        title=parse_title(name),
        version=parse_version(name),
        release_date=parse_release_date(name),
        early_access=parse_early_access(name),
        type_override=parse_type_override(name),
    )


def generate_sort_title(title):
    """
    Lowercase, drop one leading article, drop punctuation, collapse whitespace.
    'The Legend of Zelda: Breath of the Wild' -> 'legend of zelda breath of the wild'
    """
    if not title:
        return ''
    sort_title = title.lower().strip()
    sort_title = LEADING_ARTICLE_RE.sub('', sort_title, count=1)
    sort_title = re.sub(r'[^\w\s]|_', '', sort_title)
    return re.sub(r'\s+', ' ', sort_title).strip()


def is_valid_file_path(path, supported_formats):
    if not path:
        return False
    basename = os.path.basename(path)
    extension = os.path.splitext(basename)[1].lower()
    if extension not in {fmt.lower() for fmt in supported_formats}:
        return False
    return not INVALID_PATH_CHARS_RE.search(basename)
