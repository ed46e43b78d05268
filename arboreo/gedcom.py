"""GEDCOM 5.5.1 export and import for people.

Covers the common subset: INDI records with NAME, SEX, BIRT/DEAT (DATE,
PLAC), OCCU and NOTE, and FAM records for couples. The conversion is lossy:
contact details, photos, the main-user flag and most relationships have no
place in this subset. What gets lost is counted in a
``GedcomReport`` so callers can show it.

Import does not rebuild relationships from FAM records; imported people
start unconnected.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .models import Gender, RelType
from .schemas import Person, new_id

logger = logging.getLogger(__name__)

SOURCE = "ARBOREO"
DEFAULT_BIRTH_DATE = dt.date(1900, 1, 1)
MONTHS = ["JAN", "FEB", "MAR", "APR", "MAY", "JUN",
          "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]
_MONTH_NUM = {m: i for i, m in enumerate(MONTHS, start=1)}

_SEX_OUT = {Gender.MALE: "M", Gender.FEMALE: "F", Gender.TRANS: "U"}
_SEX_IN = {"M": Gender.MALE, "F": Gender.FEMALE}
_TEXT_FIELDS = {"OCCU": "profession", "NOTE": "biography"}

_QUALIFIER = re.compile(r"^(ABT|ABOUT|EST|CAL|CA|CIRCA|BEF|BEFORE|AFT|AFTER|INT)\.?\s+")
_DAY_MON_YEAR = re.compile(r"^(\d{1,2})\s+([A-Z]{3})[A-Z]*\.?\s+(\d{3,4})$")
_MON_YEAR = re.compile(r"^([A-Z]{3})[A-Z]*\.?\s+(\d{3,4})$")
_YEAR = re.compile(r"^(\d{3,4})$")
_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_US = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


@dataclass
class GedcomReport:
    warnings: list[str] = field(default_factory=list)
    dropped: Counter = field(default_factory=Counter)

    def drop(self, what: str, count: int = 1, message: Optional[str] = None):
        self.dropped[what] += count
        if message:
            self.warnings.append(message)

    def to_dict(self) -> dict:
        return {"warnings": list(self.warnings), "dropped": dict(self.dropped)}


def format_date(value: dt.date) -> str:
    return f"{value.day} {MONTHS[value.month - 1]} {value.year:04d}"


def parse_date(value: str) -> Optional[dt.date]:
    """Read a GEDCOM date value; partial dates take the first day/month.

    Returns None when the value is not a recognisable calendar date.
    """
    txt = _QUALIFIER.sub("", (value or "").strip().upper())
    year = month = day = None
    m = _DAY_MON_YEAR.match(txt)
    if m:
        day, month, year = int(m.group(1)), _MONTH_NUM.get(m.group(2)), int(m.group(3))
    elif _MON_YEAR.match(txt):
        m = _MON_YEAR.match(txt)
        day, month, year = 1, _MONTH_NUM.get(m.group(1)), int(m.group(2))
    elif _YEAR.match(txt):
        day, month, year = 1, 1, int(txt)
    elif _ISO.match(txt):
        year, month, day = (int(g) for g in _ISO.match(txt).groups())
    elif _US.match(txt):
        month, day, year = (int(g) for g in _US.match(txt).groups())
    if year is None or month is None:
        return None
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def _name_out(name: str) -> str:
    parts = name.split()
    if len(parts) < 2:
        return name.strip()
    return f"{' '.join(parts[:-1])} /{parts[-1]}/"


def _name_in(value: str) -> str:
    return " ".join(value.replace("/", " ").split())


# ── Export ──

def _text_lines(level: int, tag: str, value: str) -> list[str]:
    """A text value as one tag line plus a CONT line per embedded line break."""
    first, *rest = value.splitlines() or [""]
    return [f"{level} {tag} {first}"] + [f"{level + 1} CONT {more}" for more in rest]


def _families(people: Sequence[Person], xref: dict[str, str]) -> list[tuple[Person, Person, list[str]]]:
    """Couples in first-seen order as (husband, wife, shared child ids)."""
    by_id = {p.id: p for p in people}
    seen = set()
    out = []
    for person in people:
        for spouse_id in person.related_ids(RelType.SPOUSE):
            spouse = by_id.get(spouse_id)
            key = frozenset((person.id, spouse_id))
            if spouse is None or key in seen:
                continue
            seen.add(key)
            husb, wife = person, spouse
            if husb.gender == Gender.FEMALE and wife.gender != Gender.FEMALE:
                husb, wife = wife, husb
            spouse_children = set(spouse.related_ids(RelType.CHILD))
            children = [c for c in person.related_ids(RelType.CHILD)
                        if c in spouse_children and c in xref]
            out.append((husb, wife, children))
    return out


def encode_with_report(people: Sequence[Person]) -> tuple[str, GedcomReport]:
    report = GedcomReport()
    xref = {p.id: f"@I{n}@" for n, p in enumerate(people, start=1)}
    lines = [
        "0 HEAD",
        f"1 SOUR {SOURCE}",
        "1 GEDC",
        "2 VERS 5.5.1",
        "2 FORM LINEAGE-LINKED",
        "1 CHAR UTF-8",
    ]

    for p in people:
        lines.append(f"0 {xref[p.id]} INDI")
        lines.append(f"1 NAME {_name_out(p.name)}")
        lines.append(f"1 SEX {_SEX_OUT[Gender(p.gender)]}")
        lines.append("1 BIRT")
        lines.append(f"2 DATE {format_date(p.date_of_birth)}")
        if p.location:
            lines.extend(_text_lines(2, "PLAC", p.location))
        if p.death_date:
            lines.append("1 DEAT")
            lines.append(f"2 DATE {format_date(p.death_date)}")
        if p.profession:
            lines.extend(_text_lines(1, "OCCU", p.profession))
        if p.biography:
            lines.extend(_text_lines(1, "NOTE", p.biography))
        if p.contact_info:
            report.drop("contact_info")
        if p.photo:
            report.drop("photo")
        if p.is_main_user:
            report.drop("is_main_user")

    covered = set()
    for n, (husb, wife, children) in enumerate(_families(people, xref), start=1):
        lines.append(f"0 @F{n}@ FAM")
        lines.append(f"1 HUSB {xref[husb.id]}")
        lines.append(f"1 WIFE {xref[wife.id]}")
        for child_id in children:
            lines.append(f"1 CHIL {xref[child_id]}")
            covered.update({(husb.id, child_id), (wife.id, child_id)})

    for p in people:
        for child_id in p.related_ids(RelType.CHILD):
            if child_id in xref and (p.id, child_id) not in covered:
                report.drop("relationships")
        for sibling_id in p.related_ids(RelType.SIBLING):
            if sibling_id in xref:
                report.drop("relationships")

    lines.append("0 TRLR")
    if report.dropped:
        logger.warning("GEDCOM export dropped fields: %s", dict(report.dropped))
    return "\n".join(lines) + "\n", report


def encode(people: Sequence[Person]) -> str:
    return encode_with_report(people)[0]


# ── Import ──

def _build_person(rec: dict, report: GedcomReport, id_factory: Callable[[], str]) -> Optional[Person]:
    name = rec.get("name", "")
    if not name:
        report.drop("unnamed_records", message=f"Record {rec['xref']} has no name; skipped")
        return None

    raw_birth = rec.get("birt_date")
    born = parse_date(raw_birth) if raw_birth else None
    if born is None:
        report.drop("invalid_dates", message=(
            f"{name}: birth date {raw_birth!r} not understood; using {DEFAULT_BIRTH_DATE.isoformat()}"
            if raw_birth else
            f"{name}: no birth date; using {DEFAULT_BIRTH_DATE.isoformat()}"
        ))
        born = DEFAULT_BIRTH_DATE

    died = None
    raw_death = rec.get("deat_date")
    if raw_death:
        died = parse_date(raw_death)
        if died is None:
            report.drop("invalid_dates", message=f"{name}: death date {raw_death!r} not understood; dropped")
        elif died < born:
            report.drop("invalid_dates", message=f"{name}: death date {raw_death!r} precedes birth; dropped")
            died = None

    return Person(
        id=id_factory(),
        name=name,
        date_of_birth=born,
        death_date=died,
        gender=rec.get("gender", Gender.TRANS),
        location=rec.get("location"),
        profession=rec.get("profession"),
        biography=rec.get("biography"),
    )


def decode_with_report(text: str, id_factory: Callable[[], str] = new_id) -> tuple[list[Person], GedcomReport]:
    report = GedcomReport()
    people: list[Person] = []
    current: Optional[dict] = None
    context = sub = None
    families = 0

    def flush():
        if current is not None:
            person = _build_person(current, report, id_factory)
            if person is not None:
                people.append(person)

    def extend(key: str, tag: str, value: str):
        current[key] = current.get(key, "") + ("\n" if tag == "CONT" else "") + value

    for lineno, raw in enumerate(text.lstrip("\ufeff").splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        parts = line.split(" ", 2)
        try:
            level = int(parts[0])
        except ValueError:
            report.warnings.append(f"Line {lineno}: no level number; ignored")
            continue
        if len(parts) < 2:
            continue

        if level == 0:
            flush()
            current, context, sub = None, None, None
            if parts[1].startswith("@"):
                xref = parts[1]
                record_type = parts[2].strip().upper() if len(parts) == 3 else ""
            else:
                xref = f"@L{lineno}@"
                record_type = parts[1].upper()
            if record_type == "INDI":
                current = {"xref": xref}
            elif record_type == "FAM":
                families += 1
            continue
        if current is None:
            continue

        tag = parts[1].upper()
        value = parts[2] if len(parts) == 3 else ""
        if level == 1:
            context, sub = tag, None
            if tag == "NAME":
                current["name"] = _name_in(value)
            elif tag == "SEX":
                current["gender"] = _SEX_IN.get(value.strip().upper(), Gender.TRANS)
            elif tag == "OCCU":
                current["profession"] = value.strip()
            elif tag == "NOTE":
                current["biography"] = value
            elif tag in ("FAMS", "FAMC"):
                report.drop("relationships")
        elif level == 2 and context is not None:
            sub = tag
            if tag == "DATE" and context in ("BIRT", "DEAT"):
                current[f"{context.lower()}_date"] = value.strip()
            elif tag == "PLAC" and context == "BIRT":
                current["location"] = value.strip()
            elif tag in ("CONT", "CONC") and context in _TEXT_FIELDS:
                extend(_TEXT_FIELDS[context], tag, value)
        elif level == 3 and context == "BIRT" and sub == "PLAC" and tag in ("CONT", "CONC"):
            extend("location", tag, value)
    flush()

    if families:
        report.drop("families", families,
                    f"{families} family record(s) ignored; relationships are not imported")
    if report.warnings:
        logger.warning("GEDCOM import: %d people, %d warning(s), dropped %s",
                       len(people), len(report.warnings), dict(report.dropped))
    return people, report


def decode(text: str) -> list[Person]:
    return decode_with_report(text)[0]
