"""Family statistics.

Ages are a plain difference of calendar years: someone born in December
counts as a year older from January 1st. The dashboard has always shown
ages this way.
"""
from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Optional, Sequence

from .models import AgeGroup, DataIntegrityError, Gender, InvalidDateError
from .schemas import FamilyStatistics, NameCount, Person

TOP_NAMES = 5


def _as_date(value, field: str, person_id: str) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise InvalidDateError(f"Invalid {field} {value!r} for person {person_id}") from None


def year_difference(start: dt.date, end: dt.date) -> int:
    return end.year - start.year


def age_of(person: Person, reference_date: Optional[dt.date] = None) -> int:
    """Age at death for the deceased, otherwise age at ``reference_date``."""
    born = _as_date(person.date_of_birth, "date_of_birth", person.id)
    if person.death_date is not None:
        end = _as_date(person.death_date, "death_date", person.id)
    else:
        end = reference_date or dt.date.today()
    return year_difference(born, end)


def age_group(date_of_birth: dt.date, reference_date: Optional[dt.date] = None) -> AgeGroup:
    age = year_difference(date_of_birth, reference_date or dt.date.today())
    if age < 2:
        return AgeGroup.INFANT
    if age < 13:
        return AgeGroup.KID
    if age < 65:
        return AgeGroup.ADULT
    return AgeGroup.SENIOR


def first_name(name: str) -> str:
    return name.split()[0]


def last_name(name: str) -> str:
    return name.split()[-1]


def _top(names: list[str]) -> list[NameCount]:
    # most_common keeps first-seen order for equal counts
    return [NameCount(name=n, count=c) for n, c in Counter(names).most_common(TOP_NAMES)]


def aggregate(people: Sequence[Person], reference_date: Optional[dt.date] = None) -> FamilyStatistics:
    reference_date = reference_date or dt.date.today()

    genders = Counter({g.value: 0 for g in Gender})
    groups = Counter({g.value: 0 for g in AgeGroup})
    ages = []
    for p in people:
        try:
            gender = Gender(p.gender)
        except ValueError:
            raise DataIntegrityError(f"Unknown gender {p.gender!r} for person {p.id}") from None
        genders[gender.value] += 1
        ages.append(age_of(p, reference_date))
        born = _as_date(p.date_of_birth, "date_of_birth", p.id)
        groups[age_group(born, reference_date).value] += 1

    deceased = sum(1 for p in people if p.death_date is not None)
    names = [p.name for p in people if p.name.split()]
    return FamilyStatistics(
        total_members=len(people),
        living_members=len(people) - deceased,
        deceased_members=deceased,
        average_age=sum(ages) / len(ages) if ages else None,
        gender_distribution=dict(genders),
        age_group_distribution=dict(groups),
        common_first_names=_top([first_name(n) for n in names]),
        common_last_names=_top([last_name(n) for n in names]),
    )
