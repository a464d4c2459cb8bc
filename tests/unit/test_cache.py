from hgvroute.batch.cache import GeocodeCache, GeocodeCacheEntry, cache_key, configure_shared_cache, shared_cache


def test_cache_key_lowercases_and_trims():
    assert cache_key("  12 Rue de la Paix, PARIS ") == "12 rue de la paix, paris"


def test_cache_hit_ignores_case_and_outer_whitespace():
    cache = GeocodeCache()
    entry = GeocodeCacheEntry(lat=48.86, lon=2.33, resolved_address="12 Rue de la Paix, Paris")
    cache.put("12 Rue de la Paix, Paris", entry)

    assert cache.get(" 12 rue de la paix, paris") == entry
    assert "12 RUE DE LA PAIX, PARIS" in cache
    assert cache.hits == 1
    assert cache.get("Lyon") is None
    assert cache.misses == 1


def test_cache_last_write_wins():
    cache = GeocodeCache()
    cache.put("Lyon", GeocodeCacheEntry(lat=1.0, lon=2.0, resolved_address="a"))
    cache.put("lyon ", GeocodeCacheEntry(lat=1.0, lon=2.0, resolved_address="b"))

    assert len(cache) == 1
    assert cache.get("LYON").resolved_address == "b"


def test_cache_unbounded_by_default():
    cache = GeocodeCache()
    for i in range(500):
        cache.put(f"address {i}", GeocodeCacheEntry(lat=0.0, lon=0.0, resolved_address=None))
    assert len(cache) == 500


def test_cache_with_capacity_evicts_least_recently_used():
    cache = GeocodeCache(max_entries=2)
    cache.put("a", GeocodeCacheEntry(lat=1.0, lon=1.0, resolved_address="a"))
    cache.put("b", GeocodeCacheEntry(lat=2.0, lon=2.0, resolved_address="b"))
    cache.get("a")
    cache.put("c", GeocodeCacheEntry(lat=3.0, lon=3.0, resolved_address="c"))

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


def test_shared_cache_is_a_single_instance():
    assert shared_cache() is shared_cache()
    assert configure_shared_cache(None) is shared_cache()
    assert shared_cache().max_entries is None
