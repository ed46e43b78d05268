"""Accounts: password hashing, signed session cookies, FastAPI dependencies."""
import hashlib
import hmac
import logging
import os
import time
import uuid
from datetime import datetime, timezone

import bcrypt as _bcrypt
import kuzu
from fastapi import Depends, HTTPException, Request

from .db import get_conn

logger = logging.getLogger(__name__)

COOKIE_SECRET = os.environ.get("COOKIE_SECRET", "")
SETUP_TOKEN = os.environ.get("SETUP_TOKEN", "")
SESSION_MAX_AGE = int(os.environ.get("SESSION_MAX_AGE", str(30 * 24 * 3600)))
SESSION_COOKIE = "session"


# ── Password hashing ──

def validate_password(password: str):
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password is too long (max 72 bytes)")


def hash_password(password: str) -> str:
    validate_password(password)
    return _bcrypt.hashpw(password.encode("utf-8"), _bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# ── Session tokens ──

def _sign(payload: str) -> str:
    return hmac.new(COOKIE_SECRET.encode(), payload.encode(), hashlib.sha256).hexdigest()


def create_session_token(user_id: str, issued_at: int | None = None) -> str:
    """HMAC-signed session token: user_id:timestamp:signature."""
    ts = str(int(time.time()) if issued_at is None else issued_at)
    payload = f"{user_id}:{ts}"
    return f"{payload}:{_sign(payload)}"


def verify_session_token(token: str | None, now: float | None = None) -> str | None:
    """Return the user id of a valid, unexpired token, else None."""
    if not token or not COOKIE_SECRET:
        return None
    parts = token.split(":")
    if len(parts) != 3:
        return None
    user_id, ts, sig = parts
    if not hmac.compare_digest(sig, _sign(f"{user_id}:{ts}")):
        return None
    try:
        issued = int(ts)
    except ValueError:
        return None
    if (time.time() if now is None else now) - issued > SESSION_MAX_AGE:
        return None
    return user_id


def check_setup_token(token: str | None) -> bool:
    """Setup is open when no SETUP_TOKEN is configured."""
    if not SETUP_TOKEN:
        return True
    return bool(token) and hmac.compare_digest(token, SETUP_TOKEN)


# ── User CRUD ──

_USER_FIELDS = "u.id, u.username, u.password_hash, u.person_id, u.created_at"


def _row_to_user(row) -> dict:
    return {"id": row[0], "username": row[1], "password_hash": row[2],
            "person_id": row[3], "created_at": row[4]}


def _public(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password_hash"}


def create_user(conn: kuzu.Connection, username: str, password: str,
                person_id: str = "") -> dict:
    username = username.strip().lower()
    if not username:
        raise ValueError("Username is required")
    if get_user_by_username(conn, username):
        raise ValueError("A user with this username already exists")
    uid = str(uuid.uuid4())
    now = datetime.now(timezone.utc).isoformat()
    conn.execute(
        "CREATE (u:User {id: $id, username: $username, password_hash: $hash, "
        "person_id: $pid, created_at: $ts})",
        {"id": uid, "username": username, "hash": hash_password(password),
         "pid": person_id or "", "ts": now}
    )
    logger.info("Created user %s", username)
    return {"id": uid, "username": username, "person_id": person_id or "", "created_at": now}


def get_user_by_username(conn: kuzu.Connection, username: str) -> dict | None:
    result = conn.execute(
        f"MATCH (u:User) WHERE u.username = $username RETURN {_USER_FIELDS}",
        {"username": username.strip().lower()}
    )
    if result.has_next():
        return _row_to_user(result.get_next())
    return None


def get_user_by_id(conn: kuzu.Connection, user_id: str) -> dict | None:
    result = conn.execute(
        f"MATCH (u:User) WHERE u.id = $id RETURN {_USER_FIELDS}", {"id": user_id}
    )
    if result.has_next():
        return _row_to_user(result.get_next())
    return None


def count_users(conn: kuzu.Connection) -> int:
    result = conn.execute("MATCH (u:User) RETURN count(*)")
    if result.has_next():
        return result.get_next()[0]
    return 0


def authenticate_user(conn: kuzu.Connection, username: str, password: str) -> dict | None:
    """Verify username+password. Returns the user without its hash, or None."""
    user = get_user_by_username(conn, username)
    if not user or not verify_password(password, user["password_hash"]):
        return None
    return _public(user)


# ── FastAPI dependencies ──

def get_current_user(request: Request, conn=Depends(get_conn)) -> dict:
    """Raises 401 unless the session cookie names an existing user."""
    user_id = verify_session_token(request.cookies.get(SESSION_COOKIE))
    if not user_id:
        raise HTTPException(401, "Not authenticated")
    user = get_user_by_id(conn, user_id)
    if not user:
        raise HTTPException(401, "User not found")
    return _public(user)
