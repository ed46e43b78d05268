import enum


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    TRANS = "trans"


class RelType(str, enum.Enum):
    SPOUSE = "spouse"
    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"


class LinkType(str, enum.Enum):
    SPOUSE = "spouse"
    PARENT_CHILD = "parent-child"
    SIBLING = "sibling"


class PhoneType(str, enum.Enum):
    MOBILE = "mobile"
    LANDLINE = "landline"
    FAX = "fax"


class EventType(str, enum.Enum):
    BIRTHDAY = "birthday"
    ANNIVERSARY = "anniversary"
    MEMORIAL = "memorial"


class ActivityType(str, enum.Enum):
    ADDED = "added"
    EDITED = "edited"
    RELATIONSHIP_ADDED = "relationship_added"


class AgeGroup(str, enum.Enum):
    INFANT = "infant"
    KID = "kid"
    ADULT = "adult"
    SENIOR = "senior"


# Each side of a stored edge sees the other through the inverse type.
INVERSE_REL = {
    RelType.SPOUSE: RelType.SPOUSE,
    RelType.PARENT: RelType.CHILD,
    RelType.CHILD: RelType.PARENT,
    RelType.SIBLING: RelType.SIBLING,
}


class InvalidDateError(ValueError):
    """A stored date could not be read as a calendar date."""


class DataIntegrityError(ValueError):
    """A record holds a value outside its closed enumeration."""
