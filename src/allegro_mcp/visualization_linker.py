"""
Attach visualizations to stored queries by title.

The title is resolved to a stored query URI first; the visualization is
written only when the query exists, so no visualization ever points at a
missing query. Nothing is written before the lookup succeeds, so a failed
write leaves nothing to roll back.
"""

import logging
from typing import List, Optional

from allegro_mcp.errors import QueryNotFoundError
from allegro_mcp.query_library import QueryLibrary, StoredVisualization

logger = logging.getLogger(__name__)


class VisualizationLinker:
    """Resolves query titles and writes visualizations referencing them."""

    def __init__(self, library: QueryLibrary):
        self.library = library

    def store_visualization(self, query_title: str, repository: str, viz_type: str, config,
                            description: str, summary: Optional[str] = None) -> StoredVisualization:
        """
        Store a visualization for the query titled ``query_title`` in ``repository``.

        When several queries share the title, the newest one is used.

        Raises:
            QueryNotFoundError: No stored query has this title in this repository
            ValueError: Unknown visualization type
        """
        query_uri = self.library.find_query_uri(query_title, repository)
        if query_uri is None:
            logger.warning(f"Visualization rejected: no query titled '{query_title}' in '{repository}'")
            raise QueryNotFoundError(query_title, repository)

        return self.library.write_visualization(query_uri, viz_type, config, description, summary)

    def get_visualizations(self, query_title: str, repository: Optional[str] = None) -> List[StoredVisualization]:
        """Visualizations of the queries titled ``query_title``, newest first."""
        return self.library.get_visualizations_for_query(query_title, repository)
