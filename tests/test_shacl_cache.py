"""
Unit tests for the size-keyed SHACL cache.
"""
import json
import os

import pytest

from allegro_mcp.shacl_cache import ShaclCache, sanitize_for_filename

SCHEMA = {"prefixes": {"ns0": "http://example.org/olympics#"},
          "classes": {"ns0:Athlete": {"ns0:name": {"type": "xsd:string"}}}}


@pytest.fixture
def cache(tmp_path):
    return ShaclCache(str(tmp_path / "shacl-cache"))


class TestCachePath:

    def test_unsafe_characters_replaced(self):
        assert sanitize_for_filename('a/b:c\\d*e?f"g<h>i|j') == "a-b-c-d-e-f-g-h-i-j"

    @pytest.mark.parametrize("catalog", [None, "", "/", "root"])
    def test_root_catalog_normalized(self, cache, catalog):
        assert os.path.basename(cache.get_cache_path(catalog, "olympics")) == "root-olympics.json"

    def test_named_catalog(self, cache):
        assert os.path.basename(cache.get_cache_path("demos", "movies:v2")) == "demos-movies-v2.json"


class TestReadWrite:

    def test_round_trip_with_same_size(self, cache):
        cache.write("/", "olympics", 1200, SCHEMA)
        assert cache.read("/", "olympics", 1200) == SCHEMA

    def test_size_mismatch_is_a_miss(self, cache):
        cache.write("/", "olympics", 1200, SCHEMA)
        assert cache.read("/", "olympics", 1201) is None

    def test_mismatch_does_not_delete_entry(self, cache):
        cache.write("/", "olympics", 1200, SCHEMA)
        cache.read("/", "olympics", 5)
        assert os.path.exists(cache.get_cache_path("/", "olympics"))
        assert cache.read("/", "olympics", 1200) == SCHEMA

    def test_missing_entry_is_a_miss(self, cache):
        assert cache.read("/", "olympics", 10) is None

    def test_entry_layout(self, cache):
        cache.write("demos", "movies", 42, SCHEMA)
        with open(cache.get_cache_path("demos", "movies"), encoding="utf-8") as f:
            entry = json.load(f)
        assert entry["sourceSize"] == 42
        assert entry["schema"] == SCHEMA
        assert isinstance(entry["timestamp"], int)

    def test_write_overwrites(self, cache):
        cache.write("/", "olympics", 1, SCHEMA)
        cache.write("/", "olympics", 2, {"prefixes": {}, "classes": {}})
        assert cache.read("/", "olympics", 1) is None
        assert cache.read("/", "olympics", 2) == {"prefixes": {}, "classes": {}}

    @pytest.mark.parametrize("content", ["{not json", '{"schema": {}}', "[]"])
    def test_corrupt_entry_is_a_miss(self, cache, content):
        os.makedirs(cache.cache_dir, exist_ok=True)
        with open(cache.get_cache_path("/", "olympics"), "w", encoding="utf-8") as f:
            f.write(content)
        assert cache.read("/", "olympics", 10) is None

    @pytest.mark.parametrize("entry", [
        {"sourceSize": 5, "schema": "garbage"},
        {"sourceSize": 5, "schema": {"prefixes": {}}},
        {"sourceSize": 5, "schema": {"prefixes": [], "classes": {}}},
        {"sourceSize": "5", "schema": SCHEMA},
        {"sourceSize": None, "schema": SCHEMA},
    ])
    def test_wrong_entry_structure_is_a_miss(self, cache, entry):
        os.makedirs(cache.cache_dir, exist_ok=True)
        with open(cache.get_cache_path("/", "olympics"), "w", encoding="utf-8") as f:
            json.dump(entry, f)
        assert cache.read("/", "olympics", 5) is None

    def test_write_failure_is_swallowed(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        cache = ShaclCache(str(blocker))
        cache.write("/", "olympics", 1, SCHEMA)
        assert cache.read("/", "olympics", 1) is None


class TestClear:

    def test_clear_one_repository(self, cache):
        cache.write("/", "olympics", 1, SCHEMA)
        cache.write("/", "movies", 1, SCHEMA)
        assert cache.clear("/", "olympics") == 1
        assert cache.read("/", "olympics", 1) is None
        assert cache.read("/", "movies", 1) == SCHEMA

    def test_clear_all(self, cache):
        cache.write("/", "olympics", 1, SCHEMA)
        cache.write("demos", "movies", 1, SCHEMA)
        assert cache.clear() == 2
        assert os.listdir(cache.cache_dir) == []

    def test_clear_missing_directory(self, cache):
        assert cache.clear() == 0
