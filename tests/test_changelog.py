"""Tests for arboreo/changelog.py: record/list activities."""
import time

from arboreo import changelog
from arboreo.models import ActivityType


def test_record_activity(conn):
    result = changelog.record_activity(conn, ActivityType.ADDED, "Added Anna Lee", "anna-lee")
    assert result["type"] == "added"
    assert result["description"] == "Added Anna Lee"
    assert result["person_id"] == "anna-lee"
    assert result["timestamp"]


def test_list_empty(conn):
    assert changelog.list_activities(conn) == []


def test_list_newest_first(conn):
    changelog.record_activity(conn, ActivityType.ADDED, "first")
    time.sleep(0.01)  # Ensure distinct timestamps
    changelog.record_activity(conn, ActivityType.EDITED, "second")
    activities = changelog.list_activities(conn)
    assert [a["description"] for a in activities] == ["second", "first"]
    assert activities[0]["type"] == "edited"
    assert activities[1]["person_id"] == ""


def test_limit_and_offset(conn):
    for i in range(5):
        changelog.record_activity(conn, ActivityType.RELATIONSHIP_ADDED, f"link {i}")
        time.sleep(0.01)
    page = changelog.list_activities(conn, limit=2, offset=1)
    assert [a["description"] for a in page] == ["link 3", "link 2"]


def test_limit_clamped(conn):
    changelog.record_activity(conn, ActivityType.ADDED, "only")
    assert len(changelog.list_activities(conn, limit=0)) == 1
    assert len(changelog.list_activities(conn, limit=10_000, offset=-3)) == 1
