"""
Unit tests for the AllegroGraph client (HTTP and SPARQLWrapper mocked).
"""
import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from SPARQLWrapper import JSON, POST, CSV

from allegro_mcp.client import AllegroGraphClient
from allegro_mcp.errors import MalformedResponseError

from conftest import make_config


def _response(text='', status=200, json_data=None):
    response = MagicMock()
    response.text = text if json_data is None else json.dumps(json_data)
    response.status_code = status
    response.ok = status < 400
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return AllegroGraphClient(make_config('movies', catalog='demos'), session=session)


@pytest.fixture
def wrapper():
    with patch('allegro_mcp.client.SPARQLWrapper') as wrapper_cls:
        yield wrapper_cls


class TestSession:

    def test_default_session_ignores_environment(self):
        client = AllegroGraphClient(make_config())
        assert client.session.trust_env is False
        assert client.session.auth == ('user', 'secret')

    def test_endpoint_uses_catalog(self, client):
        assert client.config.endpoint == 'http://localhost:10035/catalogs/demos/repositories/movies'


class TestSparql:

    def test_select_returns_bindings(self, client, wrapper):
        rows = [{"s": {"type": "uri", "value": "http://a.org/x"}}]
        wrapper.return_value.query.return_value.convert.return_value = {"results": {"bindings": rows}}

        assert client.select("SELECT * WHERE { ?s ?p ?o }") == rows

        wrapper.assert_called_once_with(client.config.endpoint)
        sparql = wrapper.return_value
        sparql.setCredentials.assert_called_once_with('user', 'secret')
        sparql.setReturnFormat.assert_called_once_with(JSON)
        sparql.setTimeout.assert_called_once_with(30)

    def test_select_html_error_page(self, client, wrapper):
        wrapper.return_value.query.return_value.convert.return_value = b'<html><title>Bad Gateway</title></html>'
        with pytest.raises(MalformedResponseError, match="Bad Gateway"):
            client.select("SELECT * WHERE { ?s ?p ?o }")

    def test_select_unparseable_json(self, client, wrapper):
        wrapper.return_value.query.return_value.convert.side_effect = ValueError("Expecting value")
        with pytest.raises(MalformedResponseError, match="not JSON"):
            client.select("SELECT * WHERE { ?s ?p ?o }")

    def test_new_wrapper_per_request(self, client, wrapper):
        wrapper.return_value.query.return_value.convert.return_value = {"results": {"bindings": []}}
        client.select("SELECT 1 {}")
        client.select("SELECT 2 {}")
        assert wrapper.call_count == 2

    def test_query_csv_bytes_decoded(self, client, wrapper):
        wrapper.return_value.query.return_value.convert.return_value = b'name\r\nUsain Bolt\r\n'
        assert client.query("SELECT ?name {}", result_format='csv') == 'name\r\nUsain Bolt\r\n'
        wrapper.return_value.setReturnFormat.assert_called_once_with(CSV)

    def test_query_limit_parameter(self, client, wrapper):
        wrapper.return_value.query.return_value.convert.return_value = {"results": {"bindings": []}}
        client.query("SELECT * {}", limit=25)
        wrapper.return_value.addParameter.assert_called_once_with('limit', '25')

    def test_query_xml_document_serialized(self, client, wrapper):
        document = MagicMock()
        document.toxml.return_value = '<sparql/>'
        wrapper.return_value.query.return_value.convert.return_value = document
        assert client.query("SELECT * {}", result_format='xml') == '<sparql/>'

    def test_query_unsupported_format(self, client, wrapper):
        with pytest.raises(ValueError, match="Unsupported result format"):
            client.query("SELECT * {}", result_format='yaml')
        wrapper.assert_not_called()

    def test_update_uses_post(self, client, wrapper):
        client.update('INSERT DATA { <http://a.org/s> <http://a.org/p> "o" }')
        wrapper.return_value.setMethod.assert_called_once_with(POST)
        wrapper.return_value.query.assert_called_once()


class TestRest:

    def test_add_statements(self, client, session):
        session.post.return_value = _response(status=204)

        assert client.add_statements('<a> <b> "c" .', 'ntriples', context='http://a.org/g') == 204

        args, kwargs = session.post.call_args
        assert args[0] == 'http://localhost:10035/catalogs/demos/repositories/movies/statements'
        assert kwargs['headers'] == {'Content-Type': 'text/plain'}
        assert kwargs['params'] == {'context': 'http://a.org/g'}
        assert kwargs['data'] == '<a> <b> "c" .'.encode('utf-8')

    def test_add_statements_http_error(self, client, session):
        session.post.return_value = _response('<html><title>Forbidden</title></html>', status=403)
        with pytest.raises(requests.HTTPError):
            client.add_statements('<a> <b> "c" .')

    def test_add_statements_unsupported_format(self, client, session):
        with pytest.raises(ValueError, match="Unsupported RDF format"):
            client.add_statements('{}', 'n3')
        session.post.assert_not_called()

    def test_get_size(self, client, session):
        session.get.return_value = _response('1234\n')
        assert client.get_size() == 1234
        assert session.get.call_args[0][0].endswith('/movies/size')

    def test_get_size_not_a_number(self, client, session):
        session.get.return_value = _response('<html><title>Login</title></html>')
        with pytest.raises(MalformedResponseError, match="Repository size"):
            client.get_size()

    def test_get_shacl(self, client, session):
        session.get.return_value = _response(json_data={"@graph": []})
        assert client.get_shacl() == {"@graph": []}
        assert session.get.call_args[0][0].endswith('/data-generator/shacl')

    def test_get_shacl_html(self, client, session):
        session.get.return_value = _response('<!DOCTYPE html><title>Not Found</title>')
        with pytest.raises(MalformedResponseError, match="SHACL extraction: server returned HTML error page: Not Found"):
            client.get_shacl()

    def test_get_shacl_http_error(self, client, session):
        session.get.return_value = _response('<html><title>Unauthorized</title></html>', status=401)
        with pytest.raises(requests.HTTPError):
            client.get_shacl()

    def test_list_catalog_repositories(self, client, session):
        session.get.return_value = _response(json_data=[
            {"id": '"movies"', "title": "Movies", "readable": True, "writable": True},
            {"id": "query-library", "readable": True, "writeable": False},
            {"title": "no id"},
        ])

        repos = client.list_catalog_repositories()

        assert session.get.call_args[0][0] == 'http://localhost:10035/catalogs/demos/repositories'
        assert repos == [
            {'id': 'movies', 'title': 'Movies', 'readable': True, 'writable': True},
            {'id': 'query-library', 'title': 'query-library', 'readable': True, 'writable': False},
        ]

    def test_list_catalog_repositories_not_a_list(self, client, session):
        session.get.return_value = _response(json_data={"error": "nope"})
        with pytest.raises(MalformedResponseError, match="expected a list"):
            client.list_catalog_repositories()
