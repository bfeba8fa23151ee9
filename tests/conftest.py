"""
Pytest configuration and fixtures.

``InMemoryRepository`` stands in for an AllegroGraph repository client: it
parses posted Turtle into an rdflib Graph and answers SELECTs with SPARQL
JSON bindings, so library reads and writes run end to end.
"""
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from rdflib import Graph

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from allegro_mcp.config_loader import RepositoryConfig
from allegro_mcp.query_library import QueryLibrary


class InMemoryRepository:
    """Repository client backed by an rdflib Graph."""

    def __init__(self, config, shacl=None, namespaces=None):
        self.config = config
        self.graph = Graph()
        self.shacl = shacl
        self.namespaces = namespaces or {}
        self.posted = []
        self.selects = []
        self.shacl_calls = 0

    def add_statements(self, data, data_format='turtle', context=None):
        self.posted.append(data)
        self.graph.parse(data=data, format=data_format)
        return 204

    def select(self, query):
        self.selects.append(query)
        document = json.loads(self.graph.query(query).serialize(format='json'))
        return document['results']['bindings']

    def query(self, query, result_format='json', limit=None):
        return json.loads(self.graph.query(query).serialize(format='json'))

    def update(self, update):
        self.graph.update(update)

    def get_size(self):
        return len(self.graph)

    def get_shacl(self):
        self.shacl_calls += 1
        return self.shacl

    def get_namespaces(self):
        return self.namespaces


class SteppingClock:
    """Returns a strictly increasing time, one second per call."""

    def __init__(self, start=datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


def make_config(name='olympics', catalog='/', repository=None, **kwargs):
    return RepositoryConfig(
        name=name, host='localhost', port=10035, username='user', password='secret',
        catalog=catalog, repository=repository or name, protocol='http', **kwargs
    )


@pytest.fixture
def library_repo():
    """Empty query-library repository."""
    return InMemoryRepository(make_config('query_library', repository='query-library'))


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def library(library_repo, clock):
    return QueryLibrary(library_repo, clock=clock)


@pytest.fixture
def sample_shacl():
    """SHACL JSON-LD as produced by the repository data generator."""
    return {
        "@context": {
            "sh": "http://www.w3.org/ns/shacl#",
            "xsd": "http://www.w3.org/2001/XMLSchema#",
            "@vocab": "http://example.org/vocab/",
        },
        "@graph": [
            {
                "@id": "_:shape1",
                "@type": "sh:NodeShape",
                "sh:targetClass": {"@id": "http://example.org/olympics#Athlete"},
                "sh:property": [
                    {
                        "sh:path": {"@id": "http://example.org/olympics#name"},
                        "sh:datatype": {"@id": "http://www.w3.org/2001/XMLSchema#string"},
                    },
                    {
                        "sh:path": {"@id": "http://example.org/olympics#country"},
                        "sh:class": {"@id": "http://example.org/olympics#Country"},
                    },
                    {
                        "sh:path": {"@id": "http://www.w3.org/1999/02/22-rdf-syntax-ns#type"},
                        "sh:class": {"@id": "http://example.org/olympics#Athlete"},
                    },
                    {
                        "sh:path": {"@id": "http://example.org/olympics#nickname"},
                    },
                ],
            },
            {
                "@id": "_:shape2",
                "@type": "sh:NodeShape",
                "sh:targetClass": {"@id": "http://www.w3.org/2002/07/owl#Thing"},
                "sh:property": [
                    {
                        "sh:path": {"@id": "http://example.org/olympics#label"},
                        "sh:datatype": {"@id": "http://www.w3.org/2001/XMLSchema#string"},
                    },
                ],
            },
            {
                "@id": "_:shape3",
                "@type": "sh:NodeShape",
                "sh:targetClass": {"@id": "http://example.org/olympics#Empty"},
                "sh:property": [
                    {"sh:path": {"@id": "http://example.org/olympics#untyped"}},
                ],
            },
        ],
    }
