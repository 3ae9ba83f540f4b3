# library_filter.py - scope catalog items by library

import logging

logger = logging.getLogger(__name__)


def resolve_excluded_library_ids(configured_names, libraries):
    """
    Map configured library names onto catalog library ids (case-insensitive).

    Returns None when nothing is configured. Names that don't match a library are
    logged and ignored, so a typo never fails a cycle.
    """
    if not configured_names:
        return None

    by_name = {}
    for library in libraries:
        name = (library.get('name') or '').lower()
        if name:
            by_name[name] = library.get('id')

    excluded = set()
    for name in configured_names:
        library_id = by_name.get(name.strip().lower())
        if library_id is None:
            logger.warning(f"⚠️ Excluded library '{name}' not found in Emby - check spelling")
            continue
        logger.info(f"📚 Excluding library '{name}' (id {library_id})")
        excluded.add(library_id)
    return excluded


def filter_by_library(items, excluded_ids):
    """Drop items whose parent library is excluded. Order is preserved."""
    if not excluded_ids:
        return items
    return [item for item in items if item.library_id not in excluded_ids]
