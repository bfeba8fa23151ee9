"""
HTTP client for one AllegroGraph repository.

SPARQL protocol requests go through SPARQLWrapper; the AllegroGraph REST
endpoints (size, statements, SHACL generator, namespaces, repository list)
go through a shared requests.Session. Transport errors are not caught here.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from SPARQLWrapper import SPARQLWrapper, JSON, XML, CSV, TSV, POST, GET

from allegro_mcp.config_loader import RepositoryConfig
from allegro_mcp.errors import MalformedResponseError
from allegro_mcp.sparql_helpers import html_title, is_html, parse_bindings

logger = logging.getLogger(__name__)

RESULT_FORMATS = {
    'json': JSON,
    'xml': XML,
    'csv': CSV,
    'tsv': TSV,
}

STATEMENT_CONTENT_TYPES = {
    'turtle': 'text/turtle',
    'ntriples': 'text/plain',
    'rdfxml': 'application/rdf+xml',
    'jsonld': 'application/ld+json',
}


class AllegroGraphClient:
    """Talks to a single repository. Created lazily and reused per repository."""

    def __init__(self, config: RepositoryConfig, session: Optional[requests.Session] = None):
        """
        Args:
            config: Repository connection settings
            session: Optional pre-built session (tests inject a mock here)
        """
        self.config = config
        if session is None:
            session = requests.Session()
            # Keep .netrc and proxy settings from leaking into requests
            session.trust_env = False
            session.auth = (config.username, config.password)
        self.session = session

    def __repr__(self):
        return f"AllegroGraphClient({self.config.name!r}, endpoint={self.config.endpoint!r})"

    def _sparql(self, method=GET) -> SPARQLWrapper:
        """Fresh SPARQLWrapper per request; the wrapper holds per-query state."""
        sparql = SPARQLWrapper(self.config.endpoint)
        if self.config.username:
            sparql.setCredentials(self.config.username, self.config.password)
        sparql.setTimeout(self.config.timeout)
        sparql.setMethod(method)
        return sparql

    def _url(self, suffix: str = '') -> str:
        return f"{self.config.endpoint}{suffix}"

    def _get(self, suffix: str, operation: str, accept: str = 'application/json', **kwargs) -> requests.Response:
        response = self.session.get(
            self._url(suffix), headers={'Accept': accept},
            timeout=self.config.timeout, **kwargs
        )
        if not response.ok and is_html(response.text):
            logger.error(f"{operation} failed for {self.config.name}: "
                         f"{response.status_code} {html_title(response.text)}")
        response.raise_for_status()
        return response

    @staticmethod
    def _json(response: requests.Response, operation: str) -> Any:
        text = response.text
        if is_html(text):
            raise MalformedResponseError(operation, f"server returned HTML error page: {html_title(text)}")
        try:
            return response.json()
        except ValueError:
            raise MalformedResponseError(operation, f"response is not JSON: {text[:200]}")

    # --- SPARQL protocol ---

    def select(self, query: str) -> List[Dict[str, Dict[str, str]]]:
        """
        Run a SELECT query and return its result rows (``{var: {value: ...}}``).

        Raises:
            MalformedResponseError: If the result is not SPARQL JSON with results.bindings
        """
        sparql = self._sparql()
        sparql.setReturnFormat(JSON)
        sparql.setQuery(query)
        try:
            data = sparql.query().convert()
        except ValueError as e:
            raise MalformedResponseError('SPARQL query', f"response is not JSON: {e}")
        return parse_bindings(data, 'SPARQL query')

    def query(self, query: str, result_format: str = 'json', limit: Optional[int] = None) -> Any:
        """
        Run any read query and return the result in the requested format.

        JSON results come back parsed; xml/csv/tsv come back as text.
        """
        if result_format not in RESULT_FORMATS:
            raise ValueError(f"Unsupported result format '{result_format}'. "
                             f"Choose from: {sorted(RESULT_FORMATS)}")

        sparql = self._sparql()
        sparql.setReturnFormat(RESULT_FORMATS[result_format])
        sparql.setQuery(query)
        if limit is not None:
            sparql.addParameter('limit', str(limit))

        try:
            result = sparql.query().convert()
        except ValueError as e:
            raise MalformedResponseError('SPARQL query', f"response is not {result_format}: {e}")

        if isinstance(result, bytes):
            result = result.decode('utf-8', errors='replace')
        if isinstance(result, str) and is_html(result):
            raise MalformedResponseError('SPARQL query', f"server returned HTML error page: {html_title(result)}")
        if result_format == 'xml' and not isinstance(result, str):
            # SPARQLWrapper hands back a DOM document for XML
            result = result.toxml()
        return result

    def update(self, update: str) -> None:
        """Execute a SPARQL UPDATE."""
        sparql = self._sparql(POST)
        sparql.setQuery(update)
        sparql.query()
        logger.info(f"SPARQL update executed on {self.config.name}")

    # --- REST endpoints ---

    def add_statements(self, data: str, data_format: str = 'turtle', context: Optional[str] = None) -> int:
        """
        Add RDF statements to the repository.

        Args:
            data: Serialized RDF
            data_format: turtle, ntriples, rdfxml or jsonld
            context: Optional named graph URI

        Returns:
            HTTP status code
        """
        if data_format not in STATEMENT_CONTENT_TYPES:
            raise ValueError(f"Unsupported RDF format '{data_format}'. "
                             f"Choose from: {sorted(STATEMENT_CONTENT_TYPES)}")

        params = {'context': context} if context else {}
        response = self.session.post(
            self._url('/statements'),
            data=data.encode('utf-8'),
            params=params,
            headers={'Content-Type': STATEMENT_CONTENT_TYPES[data_format]},
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        logger.info(f"Added statements to {self.config.name} (status {response.status_code})")
        return response.status_code

    def get_size(self) -> int:
        """Number of triples in the repository."""
        response = self._get('/size', 'Repository size', accept='text/plain')
        text = response.text.strip()
        try:
            return int(text)
        except ValueError:
            raise MalformedResponseError('Repository size', f"expected an integer, got: {text[:200]}")

    def get_shacl(self) -> Dict[str, Any]:
        """SHACL shapes (JSON-LD) generated from the repository data."""
        response = self._get('/data-generator/shacl', 'SHACL extraction')
        data = self._json(response, 'SHACL extraction')
        if not isinstance(data, (dict, list)):
            raise MalformedResponseError('SHACL extraction', f"unexpected response format: {json.dumps(data)[:200]}")
        return data

    def get_namespaces(self) -> Any:
        """Namespace prefixes defined in the repository."""
        response = self._get('/namespaces', 'Namespace listing', accept='application/sparql-results+json')
        return self._json(response, 'Namespace listing')

    def list_catalog_repositories(self) -> List[Dict[str, Any]]:
        """Repositories in this client's catalog as [{id, title, readable, writable}]."""
        response = self.session.get(
            f"{self.config.base_url}{self.config.catalog_path}",
            headers={'Accept': 'application/json'},
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        data = self._json(response, 'Repository listing')
        if not isinstance(data, list):
            raise MalformedResponseError('Repository listing', f"expected a list, got: {json.dumps(data)[:200]}")

        repos = []
        for entry in data:
            if not isinstance(entry, dict) or 'id' not in entry:
                continue
            repo_id = str(entry['id']).replace('"', '')
            repos.append({
                'id': repo_id,
                'title': entry.get('title') or repo_id,
                'readable': entry.get('readable'),
                'writable': entry.get('writable', entry.get('writeable')),
            })
        return repos
