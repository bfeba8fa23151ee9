"""
Tests for schema retrieval with size-keyed caching.
"""
from unittest.mock import MagicMock

import pytest

from allegro_mcp.schema_service import SchemaService
from allegro_mcp.shacl_cache import ShaclCache

from conftest import InMemoryRepository, make_config


@pytest.fixture
def repo(sample_shacl):
    repository = InMemoryRepository(make_config('olympics'), shacl=sample_shacl)
    repository.add_statements('<http://a.org/s> <http://a.org/p> "o" .', 'turtle')
    return repository


@pytest.fixture
def service(tmp_path):
    return SchemaService(ShaclCache(str(tmp_path / 'cache')))


class TestGetShacl:

    def test_compresses_and_caches(self, service, repo):
        first = service.get_shacl(repo)
        second = service.get_shacl(repo)

        assert first == second
        assert "ns2:Athlete" in first["classes"]
        assert repo.shacl_calls == 1

    def test_size_change_recomputes(self, service, repo):
        service.get_shacl(repo)
        repo.add_statements('<http://a.org/s2> <http://a.org/p> "o2" .', 'turtle')
        service.get_shacl(repo)
        assert repo.shacl_calls == 2

    def test_refresh_bypasses_cache(self, service, repo):
        service.get_shacl(repo)
        service.get_shacl(repo, refresh=True)
        assert repo.shacl_calls == 2

    def test_raw_shacl_not_cached(self, service, repo, sample_shacl):
        assert service.get_shacl(repo, compressed=False) == sample_shacl
        assert service.cache.read('/', 'olympics', repo.get_size()) is None

    def test_unwritable_cache_still_returns_schema(self, tmp_path, repo):
        blocker = tmp_path / 'file'
        blocker.write_text('x')
        service = SchemaService(ShaclCache(str(blocker)))
        assert "ns2:Athlete" in service.get_shacl(repo)["classes"]

    def test_extraction_failure_propagates(self, service):
        client = MagicMock()
        client.config = make_config('olympics')
        client.get_size.return_value = 10
        client.get_shacl.side_effect = ConnectionError("refused")
        with pytest.raises(ConnectionError):
            service.get_shacl(client)


class TestClearCache:

    def test_clear_one(self, service, repo):
        service.get_shacl(repo)
        assert service.clear_cache(repo.config) == 1
        service.get_shacl(repo)
        assert repo.shacl_calls == 2

    def test_clear_all(self, service, repo):
        service.get_shacl(repo)
        assert service.clear_cache() == 1
