"""
Filesystem cache for compressed SHACL.

One JSON file per catalog/repository pair. An entry is valid only while the
repository size it was computed at matches the current size. Failures are
logged and treated as a miss; the cache never raises.
"""

import json
import logging
import os
import re
import time
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SHACL_CACHE_DIR = '.shacl-cache'

_UNSAFE_FILENAME_CHARS = re.compile(r'[/:\\*?"<>|]')
_ROOT_CATALOG_MARKERS = ('', '/', 'root')


def sanitize_for_filename(value: str) -> str:
    """Replace path-unsafe characters with '-'."""
    return _UNSAFE_FILENAME_CHARS.sub('-', value)


def _is_valid_entry(size, schema) -> bool:
    """Integer size and a ``{prefixes, classes}`` schema of dicts."""
    return (
        isinstance(size, int) and not isinstance(size, bool)
        and isinstance(schema, dict)
        and isinstance(schema.get('prefixes'), dict)
        and isinstance(schema.get('classes'), dict)
    )


class ShaclCache:
    """
    Cache compressed SHACL to disk, keyed by catalog and repository.

    Size mismatch is the only invalidation signal, there is no TTL.
    Concurrent writers are not synchronized; the last write wins.
    """

    def __init__(self, cache_dir: str = SHACL_CACHE_DIR):
        """
        Args:
            cache_dir: Directory holding the cache files
        """
        self.cache_dir = cache_dir

    def _ensure_dir(self):
        """Create cache directory if it doesn't exist."""
        os.makedirs(self.cache_dir, exist_ok=True)

    def get_cache_path(self, catalog: Optional[str], repository: str) -> str:
        """Get the cache file path for a catalog/repository pair."""
        catalog_str = 'root' if not catalog or catalog in _ROOT_CATALOG_MARKERS else catalog
        filename = f"{sanitize_for_filename(catalog_str)}-{sanitize_for_filename(repository)}.json"
        return os.path.join(self.cache_dir, filename)

    def read(self, catalog: Optional[str], repository: str, current_size: int) -> Optional[Dict]:
        """
        Get the cached compressed SHACL if it is still valid.

        Args:
            catalog: Catalog name (None, '', '/' or 'root' for the root catalog)
            repository: Repository name
            current_size: Current repository size (triple count)

        Returns:
            Compressed SHACL dict, or None on a miss
        """
        path = self.get_cache_path(catalog, repository)
        if not os.path.exists(path):
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                entry = json.load(f)
            cached_size = entry['sourceSize']
            schema = entry['schema']
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not read SHACL cache {path}: {e}")
            return None

        if not _is_valid_entry(cached_size, schema):
            logger.warning(f"Could not read SHACL cache {path}: unexpected entry structure")
            return None

        if cached_size != current_size:
            logger.info(f"SHACL cache invalid for {catalog}:{repository} "
                        f"(size changed: {cached_size} -> {current_size})")
            return None

        logger.info(f"SHACL cache hit for {catalog}:{repository} (size={current_size})")
        return schema

    def write(self, catalog: Optional[str], repository: str, size: int, schema: Dict):
        """
        Store compressed SHACL, overwriting any previous entry.

        Args:
            catalog: Catalog name
            repository: Repository name
            size: Repository size the schema was computed at
            schema: Compressed SHACL dict
        """
        path = self.get_cache_path(catalog, repository)
        entry = {
            'sourceSize': size,
            'schema': schema,
            'timestamp': int(time.time() * 1000),
        }
        try:
            self._ensure_dir()
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(entry, f, indent=2)
            logger.info(f"SHACL cached to {path}")
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not write SHACL cache {path}: {e}")

    def clear(self, catalog: Optional[str] = None, repository: Optional[str] = None) -> int:
        """
        Remove cached entries.

        Clears one entry when ``repository`` is given, otherwise every file
        in the cache directory.

        Returns:
            Number of files removed
        """
        removed = 0
        try:
            if repository:
                path = self.get_cache_path(catalog, repository)
                if os.path.exists(path):
                    os.remove(path)
                    removed = 1
                    logger.info(f"Cleared SHACL cache for {catalog}:{repository}")
            elif os.path.isdir(self.cache_dir):
                for name in os.listdir(self.cache_dir):
                    if name.endswith('.json'):
                        os.remove(os.path.join(self.cache_dir, name))
                        removed += 1
                logger.info(f"Cleared {removed} SHACL cache files")
        except OSError as e:
            logger.warning(f"Could not clear SHACL cache: {e}")
        return removed
