"""Shared fixtures for the arboreo test suite."""
import datetime as dt
import os
import tempfile

# Set env vars BEFORE any app imports
os.environ.setdefault("COOKIE_SECRET", "test-secret-key-for-testing")
os.environ.setdefault("SETUP_TOKEN", "test-setup-token")
os.environ.setdefault("DB_PATH", os.path.join(tempfile.mkdtemp(), "graph_data"))

import pytest
import kuzu
from fastapi.testclient import TestClient

from arboreo.db import _init_schema, get_conn
from arboreo import auth, crud
from arboreo.models import Gender, RelType
from arboreo.schemas import Person


# Ensure auth module uses test cookie secret
auth.COOKIE_SECRET = os.environ["COOKIE_SECRET"]

REFERENCE_DATE = dt.date(2024, 6, 15)


SAMPLE_GEDCOM = """\
0 HEAD
1 SOUR OTHERAPP
1 CHAR UTF-8
0 @I1@ INDI
1 NAME John /Smith/
1 SEX M
1 BIRT
2 DATE 15 MAR 1950
2 PLAC Boston
1 OCCU Carpenter
0 @I2@ INDI
1 NAME Mary /Jones/
1 SEX F
1 BIRT
2 DATE ABT 1952
1 DEAT
2 DATE 3 JUL 2010
0 @I3@ INDI
1 NAME Alex /Smith/
1 BIRT
2 DATE sometime
1 FAMC @F1@
0 @F1@ FAM
1 HUSB @I1@
1 WIFE @I2@
1 CHIL @I3@
0 TRLR
"""


def make_person(name, born, gender=Gender.MALE, **kwargs):
    """In-memory Person with a readable id derived from the name."""
    kwargs.setdefault("id", name.lower().replace(" ", "-"))
    if isinstance(born, str):
        born = dt.date.fromisoformat(born)
    return Person(name=name, date_of_birth=born, gender=gender, **kwargs)


# ── Database fixtures ──

@pytest.fixture
def db_path(tmp_path):
    """Temp directory for a fresh KuzuDB."""
    return tmp_path / "test_db"


@pytest.fixture
def db(db_path):
    """Initialized KuzuDB with the full schema."""
    database = kuzu.Database(str(db_path))
    _init_schema(database)
    yield database
    database.close()


@pytest.fixture
def conn(db):
    """KuzuDB connection for unit tests."""
    return kuzu.Connection(db)


# ── Person fixtures ──

@pytest.fixture
def person_grandpa(conn):
    return crud.upsert_person(conn, make_person("Walter Lee", "1940-02-10"))[0]


@pytest.fixture
def person_dad(conn):
    return crud.upsert_person(conn, make_person("Bob Lee", "1968-08-01", is_main_user=True))[0]


@pytest.fixture
def person_mom(conn):
    return crud.upsert_person(conn, make_person("Anna Kim", "1970-06-20", Gender.FEMALE))[0]


@pytest.fixture
def person_child(conn):
    return crud.upsert_person(conn, make_person("Anna Lee", "2000-06-30", Gender.FEMALE))[0]


@pytest.fixture
def family_graph(conn, person_grandpa, person_dad, person_mom, person_child):
    """Connected family: grandpa->dad, dad->child, mom->child, dad<->mom (spouse)."""
    crud.add_relationship(conn, person_dad.id, person_grandpa.id, RelType.PARENT)
    crud.add_relationship(conn, person_dad.id, person_child.id, RelType.CHILD)
    crud.add_relationship(conn, person_mom.id, person_child.id, RelType.CHILD)
    crud.add_relationship(conn, person_dad.id, person_mom.id, RelType.SPOUSE)
    return {
        "grandpa": person_grandpa,
        "dad": person_dad,
        "mom": person_mom,
        "child": person_child,
    }


# ── User fixtures ──

@pytest.fixture
def user_alice(conn, person_dad):
    return auth.create_user(conn, "alice", "password123", person_dad.id)


# ── FastAPI app fixtures ──

@pytest.fixture
def app_with_db(db):
    """FastAPI app with dependency override pointing at test DB."""
    from arboreo.main import app

    def override_get_conn():
        c = kuzu.Connection(db)
        try:
            yield c
        finally:
            c.close()

    app.dependency_overrides[get_conn] = override_get_conn
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_with_db):
    """Unauthenticated TestClient."""
    return TestClient(app_with_db, raise_server_exceptions=False)


def _make_authenticated_client(app, db, username, password):
    """Helper: create a user and return an authenticated TestClient."""
    c = kuzu.Connection(db)
    try:
        user = auth.create_user(c, username, password)
    except ValueError:
        user = auth.get_user_by_username(c, username)
    token = auth.create_session_token(user["id"])
    tc = TestClient(app, raise_server_exceptions=False, cookies={"session": token})
    tc._test_user = user
    return tc


@pytest.fixture
def auth_client(app_with_db, db):
    """Authenticated TestClient (alice)."""
    return _make_authenticated_client(app_with_db, db, "alice", "password123")
