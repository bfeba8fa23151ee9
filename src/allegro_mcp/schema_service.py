"""
Compressed SHACL retrieval with size-keyed caching.
"""

import logging
from typing import Any, Dict, Optional

from allegro_mcp.shacl_cache import ShaclCache
from allegro_mcp.shacl_compression import compress_shacl

logger = logging.getLogger(__name__)


class SchemaService:
    """Serves repository schemas, consulting the SHACL cache before recomputing."""

    def __init__(self, cache: Optional[ShaclCache] = None):
        self.cache = cache or ShaclCache()

    def get_shacl(self, client, compressed: bool = True, refresh: bool = False) -> Any:
        """
        Get the schema of a repository.

        Args:
            client: Repository client (get_size, get_shacl, config)
            compressed: Return the compressed form; False returns raw SHACL JSON-LD
            refresh: Ignore any cached entry and recompute

        Returns:
            Compressed schema dict, or raw JSON-LD when ``compressed`` is False
        """
        if not compressed:
            return client.get_shacl()

        config = client.config
        size = client.get_size()

        if not refresh:
            cached = self.cache.read(config.catalog, config.repository, size)
            if cached is not None:
                return cached

        logger.info(f"Extracting SHACL for {config.name} (size={size})")
        schema = compress_shacl(client.get_shacl())
        self.cache.write(config.catalog, config.repository, size, schema)
        return schema

    def clear_cache(self, config=None) -> int:
        """Clear the cached schema of one repository, or of all when ``config`` is None."""
        if config is None:
            return self.cache.clear()
        return self.cache.clear(config.catalog, config.repository)
