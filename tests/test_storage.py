import pytest

from state import MemoryDatabase, SQLiteDatabase, PrefixedDatabase, TransactionClosedError


@pytest.fixture(params=["memory", "sqlite"])
def database(request, tmp_path):
    if request.param == "memory":
        db = MemoryDatabase()
    else:
        db = SQLiteDatabase(tmp_path / "state" / "kv.sqlite")
    yield db
    db.close()


def test_commit_makes_writes_visible(database):
    tx = database.write_tx()
    tx.set(b"a", b"1")
    assert database.get(b"a") is None
    assert tx.get(b"a") == b"1"
    tx.commit()
    assert database.get(b"a") == b"1"


def test_discard_drops_writes(database):
    tx = database.write_tx()
    tx.set(b"a", b"1")
    tx.discard()
    assert database.get(b"a") is None
    with pytest.raises(TransactionClosedError):
        tx.set(b"b", b"2")


def test_delete_inside_transaction(database):
    with database.write_tx() as tx:
        tx.set(b"k", b"v")
        tx.commit()
    tx = database.write_tx()
    tx.delete(b"k")
    assert tx.get(b"k") is None
    assert database.get(b"k") == b"v"
    tx.commit()
    assert database.get(b"k") is None


def test_context_manager_discards_uncommitted(database):
    with database.write_tx() as tx:
        tx.set(b"x", b"y")
    assert tx.closed
    assert database.get(b"x") is None


def test_commit_twice_fails(database):
    tx = database.write_tx()
    tx.commit()
    with pytest.raises(TransactionClosedError):
        tx.commit()


def test_prefixed_views_are_isolated():
    base = MemoryDatabase()
    first = PrefixedDatabase(base, b"p1/")
    second = PrefixedDatabase(base, b"p2/")
    with first.write_tx() as tx:
        tx.set(b"root", b"A")
        tx.commit()
    assert first.get(b"root") == b"A"
    assert second.get(b"root") is None
    assert base.get(b"p1/root") == b"A"
    assert len(base) == 1


def test_closing_prefixed_view_leaves_base_open(tmp_path):
    base = SQLiteDatabase(tmp_path / "kv.sqlite")
    view = PrefixedDatabase(base, b"p1/")
    view.close()
    with base.write_tx() as tx:
        tx.set(b"p2/root", b"B")
        tx.commit()
    assert PrefixedDatabase(base, b"p2/").get(b"root") == b"B"
    base.close()


def test_sqlite_persists_across_connections(tmp_path):
    path = tmp_path / "kv.sqlite"
    db = SQLiteDatabase(path)
    with db.write_tx() as tx:
        tx.set(b"\x00\x01", b"\xff" * 40)
        tx.commit()
    db.close()

    reopened = SQLiteDatabase(path)
    assert reopened.get(b"\x00\x01") == b"\xff" * 40
    reopened.close()
