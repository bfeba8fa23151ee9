"""
Tool handlers behind the MCP server.

Each handler returns compact JSON text for the LLM. Errors propagate; the
MCP layer reports them as tool errors with the exception message.
"""

import json
import logging
from typing import Any, Dict, Optional

from allegro_mcp.query_library import QueryLibrary
from allegro_mcp.repository_manager import RepositoryManager
from allegro_mcp.schema_service import SchemaService
from allegro_mcp.vector_queries import (
    build_ask_documents_query,
    build_nearest_neighbor_query,
    vector_store_spec,
)
from allegro_mcp.visualization_linker import VisualizationLinker

logger = logging.getLogger(__name__)


def _c(data) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(',', ':'))


def combine_bindings(results: Dict[str, Any]) -> Dict[str, Any]:
    """Merge per-repository SPARQL JSON results, tagging each row with _repository."""
    variables = []
    bindings = []
    for repo_name, result in results.items():
        if not isinstance(result, dict) or 'results' not in result:
            continue
        for var in result.get('head', {}).get('vars', []):
            if var not in variables:
                variables.append(var)
        for row in result['results'].get('bindings', []):
            tagged = dict(row)
            tagged['_repository'] = {'type': 'literal', 'value': repo_name}
            bindings.append(tagged)
    return {'head': {'vars': variables + ['_repository']}, 'results': {'bindings': bindings}}


class AllegroTools:
    """Implements the MCP tools on top of the repository manager and query library."""

    def __init__(self, manager: RepositoryManager, schema_service: Optional[SchemaService] = None,
                 library: Optional[QueryLibrary] = None):
        self.manager = manager
        self.schema_service = schema_service or SchemaService()
        self._library = library

    @property
    def library(self) -> QueryLibrary:
        if self._library is None:
            self._library = QueryLibrary(self.manager.get_library_client())
        return self._library

    # --- SPARQL ---

    def sparql_query(self, query: str, repository: Optional[str] = None, limit: int = 100,
                     format: str = 'json') -> str:
        repo_name = self.manager.resolve(repository)
        result = self.manager.get_client(repo_name).query(query, result_format=format, limit=limit)
        if format == 'json':
            return _c({'repository': repo_name, 'result': result})
        return f"SPARQL Query Results from '{repo_name}':\n{result}"

    def sparql_update(self, query: str, repository: Optional[str] = None) -> str:
        repo_name = self.manager.resolve(repository)
        self.manager.get_client(repo_name).update(query)
        return _c({'repository': repo_name, 'status': 'ok'})

    def federated_query(self, queries: Dict[str, str], combine_results: bool = True) -> str:
        results: Dict[str, Any] = {}
        for repo_name, query in queries.items():
            if repo_name not in self.manager.repositories:
                results[repo_name] = {'error': f"Repository '{repo_name}' not found"}
                continue
            try:
                results[repo_name] = self.manager.get_client(repo_name).query(query)
            except Exception as e:
                logger.error(f"Federated query failed on {repo_name}: {e}")
                results[repo_name] = {'error': str(e)}

        if combine_results:
            errors = {name: r['error'] for name, r in results.items() if 'error' in r}
            return _c({'combined': combine_bindings(results), 'errors': errors})
        return _c(results)

    def add_triples(self, triples: str, repository: Optional[str] = None, format: str = 'turtle',
                    context: Optional[str] = None) -> str:
        repo_name = self.manager.resolve(repository)
        status = self.manager.get_client(repo_name).add_statements(triples, format, context)
        return _c({'repository': repo_name, 'status': status})

    # --- Repositories ---

    def list_repositories(self) -> str:
        return _c(self.manager.list_repositories())

    def set_repository(self, repository: str) -> str:
        previous = self.manager.set_current_repository(repository)
        return _c({'previous': previous, 'current': repository})

    def get_current_repository(self) -> str:
        return _c({'current': self.manager.current_repository})

    def get_repository_info(self, repository: Optional[str] = None) -> str:
        return _c(self.manager.get_repository_info(repository))

    def get_namespaces(self, repository: str) -> str:
        return _c(self.manager.get_client(repository).get_namespaces())

    # --- Schema ---

    def get_shacl(self, repository: Optional[str] = None, compressed: bool = True,
                  refresh: bool = False) -> str:
        client = self.manager.get_client(repository)
        return _c(self.schema_service.get_shacl(client, compressed=compressed, refresh=refresh))

    def clear_shacl_cache(self, repository: Optional[str] = None) -> str:
        config = self.manager.get_config(repository) if repository else None
        removed = self.schema_service.clear_cache(config)
        return _c({'cleared': removed})

    # --- Query library ---

    def store_query(self, title: str, description: str, sparql_query: str,
                    repository: Optional[str] = None) -> str:
        repo_name = self.manager.resolve(repository)
        stored = self.library.store_query(title, description, sparql_query, repo_name)
        return _c({'stored': True, 'id': stored.id, 'queryUri': stored.uri})

    def search_queries(self, search_term: str, repository: Optional[str] = None) -> str:
        found = self.library.search_queries(search_term, repository)
        return _c({'count': len(found), 'queries': [q.to_dict() for q in found]})

    def list_all_queries(self, repository: Optional[str] = None) -> str:
        repo_name = self.manager.resolve(repository)
        found = self.library.list_all_queries(repo_name)
        return _c({'repository': repo_name, 'count': len(found), 'queries': [q.to_dict() for q in found]})

    def store_query_visualization(self, query_title: str, visualization_type: str,
                                  visualization_config: str, description: str, summary: str,
                                  repository: Optional[str] = None) -> str:
        repo_name = self.manager.resolve(repository)
        linker = VisualizationLinker(self.library)
        stored = linker.store_visualization(query_title, repo_name, visualization_type,
                                            visualization_config, description, summary)
        return _c({'stored': True, 'id': stored.id, 'vizUri': stored.uri, 'queryUri': stored.query_uri})

    def get_query_visualizations(self, query_title: str, repository: Optional[str] = None) -> str:
        found = VisualizationLinker(self.library).get_visualizations(query_title, repository)
        return _c({'count': len(found), 'visualizations': [v.to_dict() for v in found]})

    # --- Vector search ---

    def vector_nearest_neighbor(self, text: str, vector_store: str, repository: Optional[str] = None,
                                top_n: int = 10, min_score: float = 0.0) -> str:
        repo_name = self.manager.resolve(repository)
        spec = vector_store_spec(vector_store, self.manager.get_config(repo_name).catalog)
        query = build_nearest_neighbor_query(text, spec, top_n, min_score)
        result = self.manager.get_client(repo_name).query(query)
        return _c({'repository': repo_name, 'vectorStore': spec, 'result': result})

    def vector_ask_documents(self, question: str, vector_store: str, repository: Optional[str] = None,
                             top_n: int = 5, min_score: float = 0.8) -> str:
        repo_name = self.manager.resolve(repository)
        spec = vector_store_spec(vector_store, self.manager.get_config(repo_name).catalog)
        query = build_ask_documents_query(question, spec, top_n, min_score)
        result = self.manager.get_client(repo_name).query(query)
        return _c({'repository': repo_name, 'vectorStore': spec, 'result': result})
