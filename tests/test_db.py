"""Tests for arboreo/db.py: schema init, get_conn, integrity checks."""
import kuzu
import pytest

from arboreo.db import _init_schema, get_conn, write_sentinel, check_db_integrity, _sentinel_path


def test_init_schema_creates_all_tables(db):
    conn = kuzu.Connection(db)
    for table in ("Person", "User", "Activity"):
        result = conn.execute(f"MATCH (n:{table}) RETURN count(*)")
        assert result.has_next()
    for table in ("PARENT_OF", "SPOUSE_OF", "SIBLING_OF"):
        result = conn.execute(f"MATCH ()-[r:{table}]->() RETURN count(*)")
        assert result.has_next()


def test_init_schema_idempotent(db):
    _init_schema(db)
    _init_schema(db)
    conn = kuzu.Connection(db)
    assert conn.execute("MATCH (p:Person) RETURN count(*)").has_next()


def test_get_conn_is_generator():
    gen = get_conn()
    assert hasattr(gen, "__next__")


class TestDbIntegrity:
    """Tests for the database reset safeguard."""

    def test_no_sentinel_passes(self, db, db_path, monkeypatch):
        import arboreo.db as db_mod
        monkeypatch.setattr(db_mod, "DB_PATH", db_path)
        check_db_integrity(kuzu.Connection(db))

    def test_sentinel_with_users_passes(self, db, db_path, monkeypatch):
        import arboreo.db as db_mod
        monkeypatch.setattr(db_mod, "DB_PATH", db_path)
        conn = kuzu.Connection(db)
        conn.execute(
            "CREATE (u:User {id: 'u1', username: 'test', password_hash: 'hash', "
            "person_id: '', created_at: '2024-01-01'})"
        )
        write_sentinel()
        check_db_integrity(conn)

    def test_sentinel_without_users_fails(self, db, db_path, monkeypatch):
        import arboreo.db as db_mod
        monkeypatch.setattr(db_mod, "DB_PATH", db_path)
        write_sentinel()
        assert _sentinel_path().exists()
        with pytest.raises(RuntimeError, match="0 users"):
            check_db_integrity(kuzu.Connection(db))
