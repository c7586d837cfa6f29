from pumpguard.cache import MISSING, TTLCache, cache_key


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t


def test_set_then_get_returns_value():
    cache = TTLCache(clock=FakeClock())
    cache.set("k", {"a": 1}, ttl=120)
    assert cache.get("k") == {"a": 1}


def test_get_after_ttl_is_absent_and_evicts():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("k", "v", ttl=120)
    clock.t += 119.9
    assert cache.get("k") == "v"
    clock.t += 0.1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_none_is_storable_and_distinguishable_from_absent():
    cache = TTLCache(clock=FakeClock())
    cache.set("negative", None, ttl=60)
    assert cache.get("negative", MISSING) is None
    assert cache.get("never-set", MISSING) is MISSING


def test_delete_and_overwrite():
    cache = TTLCache(clock=FakeClock())
    cache.set("k", 1, ttl=60)
    cache.set("k", 2, ttl=60)
    assert cache.get("k") == 2
    cache.delete("k")
    cache.delete("k")
    assert cache.get("k") is None


def test_cache_key_skips_none_params():
    assert cache_key("rpc:getTokenSupply", "Mint1") == "rpc:getTokenSupply:Mint1"
    assert cache_key("sigs", "Mint1", None, 3) == "sigs:Mint1:3"
