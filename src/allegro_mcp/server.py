"""
allegro_mcp server - AllegroGraph tools for LLM agents over MCP.

Exposes SPARQL query/update, repository management, compressed SHACL
schemas, the stored-query library and vector search as MCP tools.
Outputs are compact JSON.
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, Optional

from mcp.server.fastmcp import FastMCP

from allegro_mcp import __version__
from allegro_mcp.config_loader import ConfigLoader, setup_logging
from allegro_mcp.repository_manager import RepositoryManager
from allegro_mcp.schema_service import SchemaService
from allegro_mcp.shacl_cache import ShaclCache
from allegro_mcp.tools import AllegroTools

logger = logging.getLogger(__name__)

SERVER_NAME = "allegro-graph-multi-server"


def create_server(tools: AllegroTools) -> FastMCP:
    """Create the FastMCP server with every tool and resource registered."""
    mcp = FastMCP(SERVER_NAME)

    # Handlers block on HTTP; run them off the event loop
    async def run(fn, *args):
        return await asyncio.to_thread(fn, *args)

    # ============================================================
    # SPARQL TOOLS
    # ============================================================

    @mcp.tool(name="sparql_query")
    async def sparql_query(query: str, repository: Optional[str] = None, limit: int = 100,
                           format: str = "json") -> str:
        """Execute a SPARQL SELECT, CONSTRUCT, ASK, or DESCRIBE query against AllegroGraph.
        format: json|xml|csv|tsv. repository defaults to the current one."""
        return await run(tools.sparql_query, query, repository, limit, format)

    @mcp.tool(name="sparql_update")
    async def sparql_update(query: str, repository: Optional[str] = None) -> str:
        """Execute a SPARQL UPDATE (INSERT/DELETE) query."""
        return await run(tools.sparql_update, query, repository)

    @mcp.tool(name="federated_query")
    async def federated_query(queries: Dict[str, str], combine_results: bool = True) -> str:
        """Execute queries across repositories. queries: {repository: sparql}.
        combine_results merges JSON bindings, tagging rows with _repository."""
        return await run(tools.federated_query, queries, combine_results)

    @mcp.tool(name="add_triples")
    async def add_triples(triples: str, repository: Optional[str] = None, format: str = "turtle",
                          context: Optional[str] = None) -> str:
        """Add RDF triples. format: turtle|ntriples|rdfxml|jsonld. context: optional named graph URI."""
        return await run(tools.add_triples, triples, repository, format, context)

    # ============================================================
    # REPOSITORY TOOLS
    # ============================================================

    @mcp.tool(name="list_repositories")
    async def list_repositories() -> str:
        """List all configured repositories and mark the current one."""
        return await run(tools.list_repositories)

    @mcp.tool(name="set_repository")
    async def set_repository(repository: str) -> str:
        """Set the current active repository."""
        return await run(tools.set_repository, repository)

    @mcp.tool(name="get_current_repository")
    async def get_current_repository() -> str:
        """Get the currently active repository."""
        return await run(tools.get_current_repository)

    @mcp.tool(name="get_repository_info")
    async def get_repository_info(repository: Optional[str] = None) -> str:
        """Catalog, triple count and endpoint of a repository."""
        return await run(tools.get_repository_info, repository)

    # ============================================================
    # SCHEMA TOOLS
    # ============================================================

    @mcp.tool(name="get_shacl")
    async def get_shacl(repository: Optional[str] = None, compressed: bool = True,
                        refresh: bool = False) -> str:
        """Schema of the repository data. Returns {prefixes:{p:ns},classes:{Class:{prop:{type}}}}.
        Cached until the repository size changes. Call before writing SPARQL.
        compressed=false returns raw SHACL JSON-LD; refresh=true recomputes."""
        return await run(tools.get_shacl, repository, compressed, refresh)

    @mcp.tool(name="clear_shacl_cache")
    async def clear_shacl_cache(repository: Optional[str] = None) -> str:
        """Drop the cached schema of one repository, or of all repositories."""
        return await run(tools.clear_shacl_cache, repository)

    # ============================================================
    # QUERY LIBRARY TOOLS
    # ============================================================

    @mcp.tool(name="store_query")
    async def store_query(title: str, description: str, sparql_query: str,
                          repository: Optional[str] = None) -> str:
        """Store a successful SPARQL query in the query library.
        Ask the user for confirmation before storing."""
        return await run(tools.store_query, title, description, sparql_query, repository)

    @mcp.tool(name="search_queries")
    async def search_queries(search_term: str, repository: Optional[str] = None) -> str:
        """Search stored queries by title or description (case-insensitive, newest first, max 10).
        Check here before writing a new query."""
        return await run(tools.search_queries, search_term, repository)

    @mcp.tool(name="list_all_queries")
    async def list_all_queries(repository: Optional[str] = None) -> str:
        """List every stored query of a repository, newest first."""
        return await run(tools.list_all_queries, repository)

    @mcp.tool(name="store_query_visualization")
    async def store_query_visualization(query_title: str, visualization_type: str,
                                        visualization_config: str, description: str, summary: str,
                                        repository: Optional[str] = None) -> str:
        """Store a visualization for a stored query, found by exact title.
        visualization_type: bar_chart|line_chart|pie_chart|scatter_plot|network_graph|table|other.
        visualization_config: Chart.js JSON or HTML. summary: markdown findings.
        Fails if the query has not been stored."""
        return await run(tools.store_query_visualization, query_title, visualization_type,
                         visualization_config, description, summary, repository)

    @mcp.tool(name="get_query_visualizations")
    async def get_query_visualizations(query_title: str, repository: Optional[str] = None) -> str:
        """Visualizations stored for the query with this exact title, newest first."""
        return await run(tools.get_query_visualizations, query_title, repository)

    # ============================================================
    # VECTOR TOOLS
    # ============================================================

    @mcp.tool(name="vector_nearest_neighbor")
    async def vector_nearest_neighbor(text: str, vector_store: str, repository: Optional[str] = None,
                                      top_n: int = 10, min_score: float = 0.0) -> str:
        """Semantic nearest-neighbor search in a vector store (catalog:name, or name in the repository's catalog)."""
        return await run(tools.vector_nearest_neighbor, text, vector_store, repository, top_n, min_score)

    @mcp.tool(name="vector_ask_documents")
    async def vector_ask_documents(question: str, vector_store: str, repository: Optional[str] = None,
                                   top_n: int = 5, min_score: float = 0.8) -> str:
        """Answer a question from a vector store's documents, with citations."""
        return await run(tools.vector_ask_documents, question, vector_store, repository, top_n, min_score)

    # --- Resources ---

    @mcp.resource("allegro://{repository}/info", mime_type="application/json")
    async def repository_info(repository: str) -> str:
        """Basic information about a repository."""
        return await run(tools.get_repository_info, repository)

    @mcp.resource("allegro://{repository}/namespaces", mime_type="application/json")
    async def repository_namespaces(repository: str) -> str:
        """Namespace prefixes defined in a repository."""
        return await run(tools.get_namespaces, repository)

    return mcp


def build_tools(config, repositories_config) -> AllegroTools:
    manager = RepositoryManager.from_config(repositories_config)
    if config.get("discover_repositories"):
        try:
            manager.discover_repositories()
        except Exception as e:
            logger.warning(f"Repository discovery failed: {str(e)}")
    schema_service = SchemaService(ShaclCache(config["shacl_cache_dir"]))
    return AllegroTools(manager, schema_service)


def main():
    """Entry point: parse CLI args, configure logging, build tools and serve."""
    parser = argparse.ArgumentParser(description='AllegroGraph MCP server')
    parser.add_argument('--env', type=str, help='Path to environment file')
    parser.add_argument('--repositories', type=str, help='Path to repositories.yaml')
    parser.add_argument('--discover', action='store_true',
                        help='Add repositories found in the default catalog')
    parser.add_argument('--transport', type=str, default='stdio',
                        choices=['stdio', 'sse', 'streamable-http'])
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    setup_logging('mcp-server', args.debug)

    config = ConfigLoader.load_config(args.env)
    if args.discover:
        config['discover_repositories'] = True

    try:
        repositories_config = ConfigLoader.load_repositories_config(
            args.repositories or config.get("repositories_file"),
            timeout=config["request_timeout"],
        )
        tools = build_tools(config, repositories_config)
    except Exception as e:
        logger.error(f"Error initializing the server: {str(e)}")
        sys.exit(1)

    logger.info(f"{SERVER_NAME} {__version__} running on {args.transport}")
    create_server(tools).run(transport=args.transport)


if __name__ == "__main__":
    main()
