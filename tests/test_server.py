"""
Tests for MCP server wiring.
"""
import asyncio
from unittest.mock import MagicMock, patch

from allegro_mcp.repository_manager import RepositoryManager
from allegro_mcp.server import build_tools, create_server

from conftest import make_config

TOOL_NAMES = {
    'sparql_query', 'sparql_update', 'federated_query', 'add_triples',
    'list_repositories', 'set_repository', 'get_current_repository', 'get_repository_info',
    'get_shacl', 'clear_shacl_cache',
    'store_query', 'search_queries', 'list_all_queries',
    'store_query_visualization', 'get_query_visualizations',
    'vector_nearest_neighbor', 'vector_ask_documents',
}


def _repositories_config():
    return {
        'repositories': {'olympics': make_config('olympics')},
        'default_repository': 'olympics',
        'query_library': make_config('query_library', repository='query-library'),
    }


class TestCreateServer:

    def test_all_tools_registered(self):
        server = create_server(MagicMock())
        tools = asyncio.run(server.list_tools())
        assert {tool.name for tool in tools} == TOOL_NAMES

    def test_resource_templates_registered(self):
        server = create_server(MagicMock())
        templates = asyncio.run(server.list_resource_templates())
        assert {t.uriTemplate for t in templates} == {
            'allegro://{repository}/info',
            'allegro://{repository}/namespaces',
        }


class TestBuildTools:

    def test_builds_without_discovery(self, tmp_path):
        config = {'discover_repositories': False, 'shacl_cache_dir': str(tmp_path)}
        tools = build_tools(config, _repositories_config())
        assert tools.manager.current_repository == 'olympics'
        assert tools.schema_service.cache.cache_dir == str(tmp_path)

    def test_discovery_failure_is_not_fatal(self, tmp_path):
        config = {'discover_repositories': True, 'shacl_cache_dir': str(tmp_path)}
        with patch.object(RepositoryManager, 'discover_repositories', side_effect=ConnectionError("refused")) as discover:
            tools = build_tools(config, _repositories_config())
        discover.assert_called_once()
        assert list(tools.manager.repositories) == ['olympics']
