"""Tests for vessel reference keys and the per-run cache."""
from __future__ import annotations

from incident_linker.modules.reference_cache import ByImo, ByName, ReferenceCache, vessel_key


class TestVesselKey:
    def test_valid_imo_preferred(self):
        assert vessel_key("IMO 9074729", "Nordic Sea") == ByImo("9074729")

    def test_invalid_checksum_falls_back_to_name(self):
        assert vessel_key("9074728", "M/V Nordic Sea") == ByName("NORDICSEA")

    def test_no_identity(self):
        assert vessel_key(None, None) is None
        assert vessel_key(None, "M/V") is None

    def test_keys_never_collide(self):
        assert ByImo("9074729") != ByName("9074729")


class TestReferenceCache:
    def test_get_put_counts(self):
        cache = ReferenceCache()
        key = ByName("OCEANSTAR")
        assert cache.get(key) is None
        cache.put(key, 4)
        assert cache.get(key) == 4
        assert (cache.hits, cache.misses) == (1, 1)
        assert key in cache
        assert len(cache) == 1

    def test_clear(self):
        cache = ReferenceCache()
        cache.put(ByImo("9074729"), 1)
        cache.clear()
        assert len(cache) == 0
        assert ByImo("9074729") not in cache
