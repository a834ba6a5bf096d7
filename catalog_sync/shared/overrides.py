"""Resolver override files.

Both files are plain text, one entry per line, ``#`` starts a comment and
blank lines are ignored. They are read fresh on every merge run.

- ``strict_slugs.txt``: canonical slugs that may only be matched by slug.
- ``slug_replacements.txt``: ``old=new`` rewrites applied to normalized
  slugs before indexing and lookup.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Set, Union

from catalog_sync.shared.constants import PATHS
from catalog_sync.shared.errors import ConfigError
from catalog_sync.shared.resolver import normalize_slug

__all__ = [
    'load_slug_replacements',
    'load_strict_slugs',
]


def _entries(path: Path) -> Iterator[tuple]:
    with open(path, 'r', encoding='utf-8') as f:
        for line_no, line in enumerate(f, start=1):
            text = line.strip()
            if not text or text.startswith('#'):
                continue
            yield line_no, text


def load_strict_slugs(filepath: Union[str, Path] = PATHS.STRICT_SLUGS_FILE) -> Set[str]:
    """Load the strict-slug list; a missing file means no strict slugs."""
    path = Path(filepath)
    if not path.exists():
        logging.info(f"No strict slug file at {path}; running without strict list")
        return set()

    slugs = set()
    for _, text in _entries(path):
        slug = normalize_slug(text)
        if slug:
            slugs.add(slug)
    logging.info(f"Loaded {len(slugs)} strict slugs from {path}")
    return slugs


def load_slug_replacements(filepath: Union[str, Path] = PATHS.SLUG_REPLACEMENTS_FILE) -> Dict[str, str]:
    """Load ``old=new`` slug rewrites.

    Raises:
        ConfigError: If a non-comment line is not an ``old=new`` pair
    """
    path = Path(filepath)
    if not path.exists():
        logging.info(f"No slug replacement file at {path}; running without replacements")
        return {}

    replacements: Dict[str, str] = {}
    for line_no, text in _entries(path):
        old, sep, new = text.partition('=')
        old_slug = normalize_slug(old)
        new_slug = normalize_slug(new)
        if not sep or not old_slug or not new_slug:
            raise ConfigError(f"{path}:{line_no}: expected 'old=new', got {text!r}")
        replacements[old_slug] = new_slug
    logging.info(f"Loaded {len(replacements)} slug replacements from {path}")
    return replacements
