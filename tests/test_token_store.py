from __future__ import annotations

import json

from adapters.token_store import TOKEN_KEY, FileTokenStore, MemoryTokenStore
from core.interfaces.token_store import TokenStore


def test_file_store_survives_new_instance(tmp_path) -> None:
    path = tmp_path / "session.json"
    FileTokenStore(path).save("abc.def.ghi")

    assert FileTokenStore(path).read() == "abc.def.ghi"
    assert json.loads(path.read_text(encoding="utf-8")) == {TOKEN_KEY: "abc.def.ghi"}


def test_file_store_clear_removes_file(tmp_path) -> None:
    path = tmp_path / "nested" / "session.json"
    store = FileTokenStore(path)
    store.save("t1")
    store.clear()

    assert store.read() is None
    assert not path.exists()


def test_file_store_clear_keeps_other_keys(tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text(json.dumps({TOKEN_KEY: "t1", "theme": "dark"}), encoding="utf-8")
    FileTokenStore(path).clear()

    assert json.loads(path.read_text(encoding="utf-8")) == {"theme": "dark"}


def test_file_store_ignores_garbage(tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")

    assert FileTokenStore(path).read() is None


def test_clear_without_credential_is_noop(tmp_path) -> None:
    FileTokenStore(tmp_path / "missing.json").clear()


def test_stores_satisfy_protocol(tmp_path) -> None:
    assert isinstance(FileTokenStore(tmp_path / "s.json"), TokenStore)
    assert isinstance(MemoryTokenStore(), TokenStore)


def test_memory_store_roundtrip() -> None:
    store = MemoryTokenStore()
    assert store.read() is None
    store.save("x")
    assert store.read() == "x"
    store.clear()
    assert store.read() is None
