"""GEDCOM file import into the person store."""
import logging
from collections import Counter

import kuzu

from . import crud, gedcom

logger = logging.getLogger(__name__)


def decode_upload(data: bytes) -> str:
    """Uploaded bytes as text; a UTF-8 byte order mark is dropped."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValueError("GEDCOM file must be UTF-8 encoded") from None


def find_duplicate_names(people) -> list[dict]:
    """Names shared by more than one imported person, flagged for review."""
    counts = Counter(p.name for p in people)
    return [
        {"type": "possible_duplicate", "name": name, "count": count,
         "message": f'"{name}" appears {count} times in the file'}
        for name, count in counts.items() if count > 1
    ]


def import_gedcom_text(conn: kuzu.Connection, text: str, clear_first: bool = False) -> dict:
    """Decode GEDCOM text and store every person it yields.

    Imported people arrive without relationships. A file with no people leaves
    the store untouched even when ``clear_first`` is set. The result follows the
    shape of the other import reports: counts, fixes applied while reading,
    per-person errors, plus the codec's warnings and dropped-field counts.
    """
    people, report = gedcom.decode_with_report(text)
    stored = []
    errors = []
    if not people:
        errors.append({"name": "", "message": "No people found in the file; nothing was imported"})
        if clear_first:
            logger.warning("GEDCOM upload held no people; existing tree kept")
    elif clear_first:
        crud.clear_all(conn)
        logger.info("Cleared existing people before GEDCOM import")

    for person in people:
        try:
            saved, _ = crud.upsert_person(conn, person)
        except ValueError as e:
            errors.append({"name": person.name, "message": str(e)})
            continue
        stored.append(saved)

    logger.info("GEDCOM import stored %d of %d people (%d warnings)",
                len(stored), len(people), len(report.warnings))
    return {
        "people": len(stored),
        "relationships": 0,
        "person_ids": [p.id for p in stored],
        "auto_fixes": find_duplicate_names(stored),
        "errors": errors,
        **report.to_dict(),
    }
