from concurrent.futures import ThreadPoolExecutor
from itertools import chain, repeat

from src.mcp_server.session_registry import SessionHandle, SessionRegistry


def _handle(session_id: str) -> SessionHandle:
    return SessionHandle(session_id=session_id, transport=object(), server=object())


def test_create_registers_and_returns_fresh_id():
    registry = SessionRegistry()

    session_id = registry.create(_handle)

    assert len(session_id) == 32
    assert session_id in registry
    assert registry.lookup(session_id).session_id == session_id
    assert len(registry) == 1


def test_ids_are_unique_under_concurrent_creation():
    registry = SessionRegistry()

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda _: registry.create(_handle), range(200)))

    assert len(set(ids)) == 200
    assert len(registry) == 200


def test_colliding_id_is_regenerated():
    ids = chain(["aaa", "aaa", "aaa", "bbb"], repeat("ccc"))
    registry = SessionRegistry(id_factory=lambda: next(ids))

    first = registry.create(_handle)
    second = registry.create(_handle)

    assert first == "aaa"
    assert second == "bbb"


def test_lookup_of_unknown_or_missing_id_is_none():
    registry = SessionRegistry()

    assert registry.lookup("does-not-exist") is None
    assert registry.lookup(None) is None
    assert registry.lookup("") is None


def test_remove_is_idempotent():
    registry = SessionRegistry()
    session_id = registry.create(_handle)

    assert registry.remove(session_id) is not None
    assert registry.remove(session_id) is None
    assert registry.remove(None) is None
    assert registry.lookup(session_id) is None
    assert len(registry) == 0


def test_clear_returns_every_handle():
    registry = SessionRegistry()
    created = {registry.create(_handle) for _ in range(3)}

    handles = registry.clear()

    assert {handle.session_id for handle in handles} == created
    assert registry.session_ids() == []
