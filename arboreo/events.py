"""Upcoming birthdays (and optionally memorials) plus the timeline view."""
from __future__ import annotations

import datetime as dt
import logging
import os
from typing import Optional, Sequence

from .models import EventType
from .schemas import Event, Person, TimelineEntry
from .stats import age_of

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30


def window_days_from_env() -> int:
    raw = os.environ.get("EVENT_WINDOW_DAYS", "")
    if not raw:
        return DEFAULT_WINDOW_DAYS
    try:
        days = int(raw)
    except ValueError:
        days = 0
    if days < 1:
        logger.warning("Ignoring EVENT_WINDOW_DAYS=%r; using %d", raw, DEFAULT_WINDOW_DAYS)
        return DEFAULT_WINDOW_DAYS
    return days


EVENT_WINDOW_DAYS = window_days_from_env()


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def anniversary_in(year: int, original: dt.date) -> dt.date:
    """``original``'s month/day in ``year``; Feb 29 falls on Mar 1 in common years."""
    try:
        return original.replace(year=year)
    except ValueError:
        return dt.date(year, 3, 1)


def next_occurrence(original: dt.date, reference_date: dt.date) -> dt.date:
    this_year = anniversary_in(reference_date.year, original)
    if this_year >= reference_date:
        return this_year
    return anniversary_in(reference_date.year + 1, original)


def _birthday(person: Person, when: dt.date) -> Event:
    age = when.year - person.date_of_birth.year
    return Event(
        id=f"birthday-{person.id}",
        type=EventType.BIRTHDAY,
        title=f"{person.name}'s {ordinal(age)} Birthday",
        date=when,
        person_id=person.id,
        description=f"{person.name} turns {age}",
    )


def _memorial(person: Person, when: dt.date) -> Event:
    years = when.year - person.death_date.year
    return Event(
        id=f"memorial-{person.id}",
        type=EventType.MEMORIAL,
        title=f"{person.name} Memorial",
        date=when,
        person_id=person.id,
        description=f"{years} years since {person.name} passed away",
    )


def upcoming_events(people: Sequence[Person], reference_date: Optional[dt.date] = None,
                    window_days: Optional[int] = None,
                    include_memorials: bool = False) -> list[Event]:
    """Events between ``reference_date`` and ``window_days`` later, both inclusive, soonest first."""
    reference_date = reference_date or dt.date.today()
    if window_days is None:
        window_days = EVENT_WINDOW_DAYS
    horizon = reference_date + dt.timedelta(days=window_days)

    events = []
    for person in people:
        when = next_occurrence(person.date_of_birth, reference_date)
        if when <= horizon:
            events.append(_birthday(person, when))
        if include_memorials and person.death_date is not None:
            when = next_occurrence(person.death_date, reference_date)
            if when <= horizon and when.year > person.death_date.year:
                events.append(_memorial(person, when))
    return sorted(events, key=lambda e: e.date)


def due_soon(events: Sequence[Event], reference_date: Optional[dt.date] = None) -> list[Event]:
    """Events on the reference date or the day after; these get a reminder."""
    reference_date = reference_date or dt.date.today()
    tomorrow = reference_date + dt.timedelta(days=1)
    return [e for e in events if reference_date <= e.date <= tomorrow]


def timeline(people: Sequence[Person], reference_date: Optional[dt.date] = None) -> list[TimelineEntry]:
    return [
        TimelineEntry(
            person_id=p.id, name=p.name, date_of_birth=p.date_of_birth,
            death_date=p.death_date, age=age_of(p, reference_date),
        )
        for p in sorted(people, key=lambda p: p.date_of_birth)
    ]
