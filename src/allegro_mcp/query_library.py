"""
Query library: stored SPARQL queries and their visualizations.

Queries and visualizations are kept as RDF in a dedicated repository
(``query-library``). Documents are written as Turtle and read back with
SPARQL SELECTs. Every piece of free text passes through ``quote_literal``
and every caller-supplied IRI through ``format_iri``.

Vocabulary::

    query:StoredQuery   dc:title, dc:description, query:sparqlText,
                        query:repository, dc:created, query:successful
    viz:Visualization   viz:forQuery, viz:type, viz:config,
                        dc:description, viz:summary, dc:created
"""

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from rdflib import Namespace
from rdflib.namespace import DCTERMS, XSD

from allegro_mcp.sparql_helpers import (
    binding_value,
    format_iri,
    quote_literal,
    require_value,
)

logger = logging.getLogger(__name__)

QUERY = Namespace("http://franz.com/ns/query-library#")
VIZ = Namespace("http://franz.com/ns/visualization#")

SEARCH_LIMIT = 10

VISUALIZATION_TYPES = (
    'bar_chart',
    'line_chart',
    'pie_chart',
    'scatter_plot',
    'network_graph',
    'table',
    'other',
)

SPARQL_PREFIXES = (
    f"PREFIX query: <{QUERY}>\n"
    f"PREFIX viz: <{VIZ}>\n"
    f"PREFIX dc: <{DCTERMS}>\n"
)

TURTLE_PREFIXES = (
    f"@prefix query: <{QUERY}> .\n"
    f"@prefix viz: <{VIZ}> .\n"
    f"@prefix dc: <{DCTERMS}> .\n"
    f"@prefix xsd: <{XSD}> .\n"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _local_name(uri: str) -> str:
    return uri.rsplit('#', 1)[-1]


@dataclass
class StoredQuery:
    """A stored SPARQL query. Immutable once written."""
    uri: str
    title: str
    description: str
    sparql: str
    repository: str
    created: Optional[str] = None
    successful: Optional[bool] = None

    @property
    def id(self) -> str:
        return _local_name(self.uri)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['id'] = self.id
        data['queryUri'] = data.pop('uri')
        return data


@dataclass
class StoredVisualization:
    """A visualization attached to a stored query."""
    uri: str
    query_uri: Optional[str]
    type: str
    config: str
    description: str
    summary: Optional[str] = None
    created: Optional[str] = None

    @property
    def id(self) -> str:
        return _local_name(self.uri)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['id'] = self.id
        data['vizUri'] = data.pop('uri')
        data['queryUri'] = data.pop('query_uri')
        return data


def generate_id(kind: str, now: datetime) -> str:
    """
    Document id ``<kind>-<epoch millis>-<8 hex>``.

    Sorts roughly by creation time; the random suffix keeps ids written in
    the same millisecond apart.
    """
    millis = int(now.timestamp() * 1000)
    return f"{kind}-{millis}-{uuid.uuid4().hex[:8]}"


def format_timestamp(now: datetime) -> str:
    """xsd:dateTime lexical form in UTC with millisecond precision."""
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# --- Turtle documents ---

def build_query_turtle(local_id: str, title: str, description: str, sparql: str,
                       repository: str, created: str, successful: bool = True) -> str:
    return (
        f"{TURTLE_PREFIXES}\n"
        f"query:{local_id} a query:StoredQuery ;\n"
        f"    dc:title {quote_literal(title)} ;\n"
        f"    dc:description {quote_literal(description)} ;\n"
        f"    query:sparqlText {quote_literal(sparql)} ;\n"
        f"    query:repository {quote_literal(repository)} ;\n"
        f"    dc:created {quote_literal(created)}^^xsd:dateTime ;\n"
        f"    query:successful {'true' if successful else 'false'} .\n"
    )


def build_visualization_turtle(local_id: str, query_uri: str, viz_type: str, config: str,
                               description: str, summary: Optional[str], created: str) -> str:
    lines = [
        f"viz:{local_id} a viz:Visualization ;",
        f"    viz:forQuery {format_iri(query_uri)} ;",
        f"    viz:type {quote_literal(viz_type)} ;",
        f"    viz:config {quote_literal(config)} ;",
        f"    dc:description {quote_literal(description)} ;",
    ]
    if summary is not None:
        lines.append(f"    viz:summary {quote_literal(summary)} ;")
    lines.append(f"    dc:created {quote_literal(created)}^^xsd:dateTime .")
    return f"{TURTLE_PREFIXES}\n" + "\n".join(lines) + "\n"


# --- SPARQL queries ---

_QUERY_PATTERN = """{values}  ?queryUri a query:StoredQuery ;
     dc:title ?title ;
     dc:description ?description ;
     query:sparqlText ?sparql ;
     query:repository ?repo .
  OPTIONAL {{ ?queryUri dc:created ?created }}
  OPTIONAL {{ ?queryUri query:successful ?successful }}
{filters}"""


def _query_select(filters: List[str], tail: str = "ORDER BY DESC(?created)", values: str = "") -> str:
    body = _QUERY_PATTERN.format(values=values, filters="".join(f"  FILTER({f})\n" for f in filters))
    return (
        f"{SPARQL_PREFIXES}"
        f"SELECT ?queryUri ?title ?description ?sparql ?repo ?created ?successful WHERE {{\n"
        f"{body}"
        f"}}\n"
        f"{tail}"
    )


def build_search_query(term: str, repository: Optional[str] = None, limit: int = SEARCH_LIMIT) -> str:
    """Case-insensitive substring match on title or description, newest first."""
    needle = quote_literal(term)
    filters = [
        f"CONTAINS(LCASE(?title), LCASE({needle})) || "
        f"CONTAINS(LCASE(?description), LCASE({needle}))"
    ]
    if repository:
        filters.append(f"?repo = {quote_literal(repository)}")
    return _query_select(filters, f"ORDER BY DESC(?created)\nLIMIT {int(limit)}")


def build_list_query(repository: str) -> str:
    """All queries of a repository, newest first, no cap."""
    return _query_select([f"?repo = {quote_literal(repository)}"])


def build_title_lookup_query(title: str, repository: Optional[str] = None) -> str:
    """Exact title match, newest first."""
    filters = [f"?title = {quote_literal(title)}"]
    if repository:
        filters.append(f"?repo = {quote_literal(repository)}")
    return _query_select(filters)


def build_query_details_query(query_uri: str) -> str:
    return _query_select([], tail="LIMIT 1",
                         values=f"  VALUES ?queryUri {{ {format_iri(query_uri)} }}\n")


def build_visualizations_query(query_uri: Optional[str] = None, title: Optional[str] = None,
                               repository: Optional[str] = None) -> str:
    """
    Visualizations attached to a query, newest first.

    The query is selected either by URI or by exact title (optionally
    restricted to a repository).
    """
    if query_uri:
        query_pattern = f"  VALUES ?queryUri {{ {format_iri(query_uri)} }}\n"
    elif title is not None:
        query_pattern = (
            f"  ?queryUri a query:StoredQuery ;\n"
            f"     dc:title ?queryTitle ;\n"
            f"     query:repository ?repo .\n"
            f"  FILTER(?queryTitle = {quote_literal(title)})\n"
        )
        if repository:
            query_pattern += f"  FILTER(?repo = {quote_literal(repository)})\n"
    else:
        raise ValueError("Either query_uri or title is required")

    return (
        f"{SPARQL_PREFIXES}"
        f"SELECT ?vizUri ?queryUri ?type ?config ?description ?summary ?created WHERE {{\n"
        f"{query_pattern}"
        f"  ?vizUri a viz:Visualization ;\n"
        f"     viz:forQuery ?queryUri ;\n"
        f"     viz:type ?type ;\n"
        f"     viz:config ?config ;\n"
        f"     dc:description ?description .\n"
        f"  OPTIONAL {{ ?vizUri dc:created ?created }}\n"
        f"  OPTIONAL {{ ?vizUri viz:summary ?summary }}\n"
        f"}}\n"
        f"ORDER BY DESC(?created)"
    )


def build_visualization_details_query(viz_uri: str) -> str:
    return (
        f"{SPARQL_PREFIXES}"
        f"SELECT ?vizUri ?queryUri ?type ?config ?description ?summary ?created WHERE {{\n"
        f"  VALUES ?vizUri {{ {format_iri(viz_uri)} }}\n"
        f"  ?vizUri a viz:Visualization ;\n"
        f"     viz:type ?type ;\n"
        f"     viz:config ?config ;\n"
        f"     dc:description ?description .\n"
        f"  OPTIONAL {{ ?vizUri viz:forQuery ?queryUri }}\n"
        f"  OPTIONAL {{ ?vizUri dc:created ?created }}\n"
        f"  OPTIONAL {{ ?vizUri viz:summary ?summary }}\n"
        f"}}\n"
        f"LIMIT 1"
    )


# --- Result rows ---

def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.strip().lower() in ('true', '1')


def query_from_row(row: Dict[str, Dict[str, str]], operation: str = 'Query library') -> StoredQuery:
    return StoredQuery(
        uri=require_value(row, 'queryUri', operation),
        title=require_value(row, 'title', operation),
        description=require_value(row, 'description', operation),
        sparql=require_value(row, 'sparql', operation),
        repository=require_value(row, 'repo', operation),
        created=binding_value(row, 'created'),
        successful=_parse_bool(binding_value(row, 'successful')),
    )


def visualization_from_row(row: Dict[str, Dict[str, str]], operation: str = 'Query library') -> StoredVisualization:
    return StoredVisualization(
        uri=require_value(row, 'vizUri', operation),
        query_uri=binding_value(row, 'queryUri'),
        type=require_value(row, 'type', operation),
        config=require_value(row, 'config', operation),
        description=require_value(row, 'description', operation),
        summary=binding_value(row, 'summary'),
        created=binding_value(row, 'created'),
    )


class QueryLibrary:
    """Reads and writes stored queries and visualizations in the library repository."""

    def __init__(self, client, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            client: Client of the query-library repository (select, add_statements)
            clock: Returns the current time as an aware datetime
        """
        self.client = client
        self.clock = clock or _utcnow

    # --- Writer ---

    def store_query(self, title: str, description: str, sparql: str, repository: str) -> StoredQuery:
        """
        Store a query. Storing the same query again creates a new document.

        Returns:
            The stored record, with its generated URI
        """
        now = self.clock()
        local_id = generate_id('query', now)
        created = format_timestamp(now)

        turtle = build_query_turtle(local_id, title, description, sparql, repository, created)
        self.client.add_statements(turtle, 'turtle')

        stored = StoredQuery(
            uri=f"{QUERY}{local_id}", title=title, description=description,
            sparql=sparql, repository=repository, created=created, successful=True,
        )
        logger.info(f"Stored query '{title}' for repository '{repository}' as {stored.id}")
        return stored

    def write_visualization(self, query_uri: str, viz_type: str, config, description: str,
                            summary: Optional[str] = None) -> StoredVisualization:
        """
        Write a visualization for an existing query URI.

        Callers resolve the query first; see VisualizationLinker.
        """
        if viz_type not in VISUALIZATION_TYPES:
            raise ValueError(f"Unknown visualization type '{viz_type}'. "
                             f"Choose from: {', '.join(VISUALIZATION_TYPES)}")
        if not isinstance(config, str):
            config = json.dumps(config)

        now = self.clock()
        local_id = generate_id('viz', now)
        created = format_timestamp(now)

        turtle = build_visualization_turtle(local_id, query_uri, viz_type, config,
                                            description, summary, created)
        self.client.add_statements(turtle, 'turtle')

        stored = StoredVisualization(
            uri=f"{VIZ}{local_id}", query_uri=query_uri, type=viz_type, config=config,
            description=description, summary=summary, created=created,
        )
        logger.info(f"Stored {viz_type} visualization {stored.id} for {query_uri}")
        return stored

    # --- Reader ---

    def search_queries(self, term: str, repository: Optional[str] = None,
                       limit: int = SEARCH_LIMIT) -> List[StoredQuery]:
        """Queries whose title or description contains ``term`` (case-insensitive)."""
        rows = self.client.select(build_search_query(term, repository, limit))
        return [query_from_row(row, 'Search queries') for row in rows]

    def list_all_queries(self, repository: str) -> List[StoredQuery]:
        rows = self.client.select(build_list_query(repository))
        return [query_from_row(row, 'List queries') for row in rows]

    def get_query(self, query_uri: str) -> Optional[StoredQuery]:
        rows = self.client.select(build_query_details_query(query_uri))
        return query_from_row(rows[0], 'Query details') if rows else None

    def find_query_uri(self, title: str, repository: Optional[str] = None) -> Optional[str]:
        """URI of the newest query with exactly this title, or None."""
        rows = self.client.select(build_title_lookup_query(title, repository))
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning(f"{len(rows)} stored queries are titled '{title}'; using the newest")
        return query_from_row(rows[0], 'Query lookup').uri

    def get_visualizations_for_query(self, title: str,
                                     repository: Optional[str] = None) -> List[StoredVisualization]:
        rows = self.client.select(build_visualizations_query(title=title, repository=repository))
        return [visualization_from_row(row, 'Query visualizations') for row in rows]

    def get_visualizations_for_uri(self, query_uri: str) -> List[StoredVisualization]:
        rows = self.client.select(build_visualizations_query(query_uri=query_uri))
        return [visualization_from_row(row, 'Query visualizations') for row in rows]

    def get_visualization(self, viz_uri: str) -> Optional[StoredVisualization]:
        rows = self.client.select(build_visualization_details_query(viz_uri))
        return visualization_from_row(rows[0], 'Visualization details') if rows else None
