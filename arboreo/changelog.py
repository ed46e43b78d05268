"""Append-only activity log shown on the dashboard."""
import uuid
from datetime import datetime, timezone

import kuzu

from .models import ActivityType


def record_activity(conn: kuzu.Connection, kind: ActivityType, summary: str,
                    person_id: str = "") -> dict:
    aid = str(uuid.uuid4())
    now = datetime.now(timezone.utc).isoformat()
    kind = ActivityType(kind)
    conn.execute(
        "CREATE (a:Activity {id: $id, kind: $kind, summary: $summary, "
        "person_id: $pid, created_at: $ts})",
        {"id": aid, "kind": kind.value, "summary": summary,
         "pid": person_id or "", "ts": now}
    )
    return {"id": aid, "type": kind.value, "description": summary,
            "timestamp": now, "person_id": person_id or ""}


def list_activities(conn: kuzu.Connection, limit: int = 50, offset: int = 0) -> list[dict]:
    """Recent activities, newest first."""
    limit = max(1, min(int(limit), 200))
    offset = max(0, int(offset))
    result = conn.execute(
        f"MATCH (a:Activity) "
        f"RETURN a.id, a.kind, a.summary, a.person_id, a.created_at "
        f"ORDER BY a.created_at DESC, a.id DESC "
        f"SKIP {offset} LIMIT {limit}"
    )
    activities = []
    while result.has_next():
        row = result.get_next()
        activities.append({
            "id": row[0],
            "type": row[1],
            "description": row[2],
            "person_id": row[3],
            "timestamp": row[4],
        })
    return activities
