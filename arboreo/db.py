"""KuzuDB embedded graph database connection."""
import os
import logging
import kuzu
from pathlib import Path

logger = logging.getLogger(__name__)

DB_PATH = Path(os.environ.get("DB_PATH", Path(__file__).resolve().parent.parent / "graph_data"))
_database = None
_SENTINEL_FILE = ".db_initialized"


def _sentinel_path():
    return DB_PATH.parent / _SENTINEL_FILE


def write_sentinel():
    """Write a sentinel file indicating the database holds at least one account.
    Called after setup creates the first user so a silent DB reset can be detected."""
    try:
        path = _sentinel_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("initialized")
        logger.info("Database sentinel written to %s", path)
    except OSError as e:
        logger.warning("Could not write DB sentinel: %s", e)


def check_db_integrity(conn):
    """Refuse to serve if the sentinel exists but the database has no users
    (the data volume was probably not mounted)."""
    sentinel = _sentinel_path()
    if not sentinel.exists():
        return  # first run
    result = conn.execute("MATCH (u:User) RETURN count(*)")
    count = result.get_next()[0] if result.has_next() else 0
    if count == 0:
        logger.critical(
            "DATABASE INTEGRITY CHECK FAILED: sentinel file exists at %s "
            "but the database has 0 users. Refusing to serve requests.",
            sentinel
        )
        raise RuntimeError(
            "Database was previously initialized but now has 0 users. "
            "Check that DB_PATH points at the persistent volume."
        )
    logger.info("Database integrity check passed: %d users found", count)


def get_database():
    global _database
    if _database is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _database = kuzu.Database(str(DB_PATH))
        _init_schema(_database)
        check_db_integrity(kuzu.Connection(_database))
        logger.info("Opened family database at %s", DB_PATH)
    return _database


def _init_schema(db):
    conn = kuzu.Connection(db)

    # ── Family members ──
    # Dates are ISO strings; '' means unset. contact_info holds JSON.
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS Person("
        "id STRING, name STRING, gender STRING, "
        "birth_date STRING, death_date STRING, "
        "location STRING, profession STRING, biography STRING, photo STRING, "
        "contact_info STRING, is_main_user BOOL, "
        "PRIMARY KEY(id))"
    )
    # One edge per pair; both endpoints read it.
    conn.execute("CREATE REL TABLE IF NOT EXISTS PARENT_OF(FROM Person TO Person, id STRING, created_at STRING)")
    conn.execute("CREATE REL TABLE IF NOT EXISTS SPOUSE_OF(FROM Person TO Person, id STRING, created_at STRING)")
    conn.execute("CREATE REL TABLE IF NOT EXISTS SIBLING_OF(FROM Person TO Person, id STRING, created_at STRING)")

    # ── Accounts ──
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS User("
        "id STRING, username STRING, password_hash STRING, "
        "person_id STRING, created_at STRING, "
        "PRIMARY KEY(id))"
    )

    # ── Activity log ──
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS Activity("
        "id STRING, kind STRING, summary STRING, "
        "person_id STRING, created_at STRING, "
        "PRIMARY KEY(id))"
    )


def get_conn():
    db = get_database()
    conn = kuzu.Connection(db)
    try:
        yield conn
    finally:
        conn.close()
