from session_store import DEFAULT_TTL_SECONDS, InMemorySessionStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_set_and_get():
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)
    session = store.set("user:1", "20 Minuten")
    assert store.get("user:1") == session
    assert session.prompt == "20 Minuten"
    assert store.get("user:2") is None
    assert store.get("") is None


def test_entry_expires_after_ttl():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=DEFAULT_TTL_SECONDS, clock=clock)
    store.set("user:1", "ÖGK Blutentnahme")
    clock.now += DEFAULT_TTL_SECONDS
    assert store.get("user:1") is not None
    clock.now += 1
    assert store.get("user:1") is None
    assert len(store) == 0


def test_delete():
    store = InMemorySessionStore(clock=FakeClock())
    store.set("addr:127.0.0.1", "Harnstreifentest")
    store.delete("addr:127.0.0.1")
    store.delete("unknown")
    assert store.get("addr:127.0.0.1") is None


def test_set_purges_stale_entries():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=10, clock=clock)
    store.set("a", "x")
    store.set("b", "y")
    clock.now += 11
    store.set("c", "z")
    assert len(store) == 1
    assert store.purge_expired() == 0


def test_purge_expired_counts():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=5, clock=clock)
    store.set("a", "x")
    clock.now += 6
    assert store.purge_expired() == 1
