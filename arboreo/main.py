import datetime as dt
import logging

from fastapi import Depends, FastAPI, File, Form, HTTPException, Response, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse

from . import auth, changelog, crud, events, gedcom, graph, importer, stats
from .db import get_conn, write_sentinel
from .models import ActivityType, DataIntegrityError, InvalidDateError
from .schemas import (
    Activity, Event, FamilyStatistics, GraphOut, LoginRequest, PathOut, Person,
    RelativeCreate, RelCreate, SetupRequest, SignupRequest, TimelineEntry,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Arboreo")


@app.exception_handler(InvalidDateError)
@app.exception_handler(DataIntegrityError)
async def unprocessable(request, exc):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def _set_session(response: Response, user_id: str):
    response.set_cookie(
        auth.SESSION_COOKIE, auth.create_session_token(user_id),
        max_age=auth.SESSION_MAX_AGE, httponly=True, samesite="lax",
    )


def _get_person_or_404(conn, person_id: str) -> Person:
    person = crud.get_person(conn, person_id)
    if person is None:
        raise HTTPException(404, "Person not found")
    return person


def _create_account(conn, body: SignupRequest, main_user: bool) -> dict:
    try:
        auth.validate_password(body.password)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if auth.get_user_by_username(conn, body.username):
        raise HTTPException(400, "A user with this username already exists")
    person, _ = crud.upsert_person(conn, Person(
        name=body.name, date_of_birth=body.date_of_birth, gender=body.gender,
        is_main_user=main_user,
    ))
    try:
        user = auth.create_user(conn, body.username, body.password, person.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    changelog.record_activity(conn, ActivityType.ADDED, f"{person.name} joined the family tree", person.id)
    return user


# ── Service ──

@app.get("/health")
def health():
    return {"ok": True}


# ── Setup & auth ──

@app.get("/api/setup/status")
def setup_status(conn=Depends(get_conn)):
    return {"setup_complete": auth.count_users(conn) > 0}


@app.post("/api/setup")
def setup(body: SetupRequest, response: Response, conn=Depends(get_conn)):
    if auth.count_users(conn) > 0:
        raise HTTPException(400, "Setup has already been completed")
    if not auth.check_setup_token(body.setup_token):
        raise HTTPException(403, "Invalid setup token")
    user = _create_account(conn, body, main_user=True)
    write_sentinel()
    logger.info("Initial setup completed by %s", user["username"])
    _set_session(response, user["id"])
    return user


@app.post("/api/signup")
def signup(body: SignupRequest, response: Response, conn=Depends(get_conn)):
    if auth.count_users(conn) == 0:
        raise HTTPException(400, "Complete setup first")
    user = _create_account(conn, body, main_user=False)
    _set_session(response, user["id"])
    return user


@app.post("/api/login")
def login(body: LoginRequest, response: Response, conn=Depends(get_conn)):
    user = auth.authenticate_user(conn, body.username, body.password)
    if not user:
        raise HTTPException(401, "Invalid username or password")
    _set_session(response, user["id"])
    return user


@app.post("/api/logout")
def logout(response: Response):
    response.delete_cookie(auth.SESSION_COOKIE)
    return {"ok": True}


@app.get("/api/user")
def current_user(user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    person = crud.get_person(conn, user["person_id"]) if user["person_id"] else None
    return {"user": user, "person": person}


# ── Family members ──

@app.get("/api/family")
def family(user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return {"people": crud.list_people(conn)}


@app.get("/api/family/{person_id}", response_model=Person)
def family_member(person_id: str, user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return _get_person_or_404(conn, person_id)


@app.post("/api/family/update", response_model=Person)
def update_member(body: Person, user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    try:
        person, created = crud.upsert_person(conn, body)
    except KeyError:
        raise HTTPException(404, "Person not found")
    except ValueError as e:
        raise HTTPException(400, str(e))
    if created:
        changelog.record_activity(conn, ActivityType.ADDED, f"Added {person.name}", person.id)
    else:
        changelog.record_activity(conn, ActivityType.EDITED, f"Updated {person.name}", person.id)
    return person


@app.post("/api/family/{person_id}/relations", response_model=Person)
def add_relative(person_id: str, body: RelativeCreate,
                 user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    anchor = _get_person_or_404(conn, person_id)
    relative, _ = crud.upsert_person(conn, Person(
        name=body.name, date_of_birth=body.date_of_birth, gender=body.gender,
    ))
    crud.add_relationship(conn, anchor.id, relative.id, body.type)
    changelog.record_activity(
        conn, ActivityType.ADDED,
        f"Added {relative.name} as {anchor.name}'s {body.type.value}", relative.id,
    )
    return crud.get_person(conn, relative.id)


@app.post("/api/relationships")
def add_relationship(body: RelCreate, user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    try:
        rel = crud.add_relationship(conn, body.person_id, body.other_person_id, body.type)
    except KeyError:
        raise HTTPException(404, "Person not found")
    except ValueError as e:
        raise HTTPException(400, str(e))
    if rel["created"]:
        person = crud.get_person(conn, body.person_id)
        other = crud.get_person(conn, body.other_person_id)
        changelog.record_activity(
            conn, ActivityType.RELATIONSHIP_ADDED,
            f"{other.name} is now {person.name}'s {body.type.value}", person.id,
        )
    return rel


# ── Views ──

@app.get("/api/graph", response_model=GraphOut)
def family_graph(user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return graph.build_graph(crud.list_people(conn))


@app.get("/api/path", response_model=PathOut)
def relationship_path(to_id: str, from_id: str | None = None,
                      user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    people = crud.list_people(conn)
    if from_id is None:
        main = graph.find_main_user(people)
        if main is None:
            return PathOut(path=[])
        from_id = main.id
    g = graph.build_graph(people)
    return PathOut(path=graph.shortest_path(g.nodes, g.links, from_id, to_id))


@app.get("/api/generations/{person_id}")
def generations(person_id: str, depth: int = 4,
                user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    try:
        gens = graph.ancestor_generations(crud.list_people(conn), person_id, max(0, depth))
    except KeyError:
        raise HTTPException(404, "Person not found")
    return {"generations": gens}


@app.get("/api/search")
def search(q: str = "", user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return {"people": graph.search_people(crud.list_people(conn), q)}


@app.get("/api/statistics", response_model=FamilyStatistics)
def statistics(reference_date: dt.date | None = None,
               user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return stats.aggregate(crud.list_people(conn), reference_date)


@app.get("/api/events", response_model=list[Event])
def upcoming_events(reference_date: dt.date | None = None, include_memorials: bool = False,
                    user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return events.upcoming_events(crud.list_people(conn), reference_date,
                                  include_memorials=include_memorials)


@app.get("/api/timeline", response_model=list[TimelineEntry])
def timeline(reference_date: dt.date | None = None,
             user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return events.timeline(crud.list_people(conn), reference_date)


@app.get("/api/activities", response_model=list[Activity])
def activities(limit: int = 50, offset: int = 0,
               user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    return changelog.list_activities(conn, limit, offset)


# ── GEDCOM ──

@app.get("/api/gedcom/export")
def gedcom_export(user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    text = gedcom.encode(crud.list_people(conn))
    return PlainTextResponse(
        text, headers={"Content-Disposition": 'attachment; filename="family-tree.ged"'}
    )


@app.post("/api/gedcom/import")
async def gedcom_import(file: UploadFile = File(...), clear_first: bool = Form(False),
                        user=Depends(auth.get_current_user), conn=Depends(get_conn)):
    data = await file.read()
    try:
        text = importer.decode_upload(data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    result = importer.import_gedcom_text(conn, text, clear_first=clear_first)
    if result["people"]:
        changelog.record_activity(
            conn, ActivityType.ADDED,
            f"Imported {result['people']} people from {file.filename or 'a GEDCOM file'}",
        )
    return result
