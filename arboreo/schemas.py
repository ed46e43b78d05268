import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import ActivityType, EventType, Gender, LinkType, PhoneType, RelType

LEGACY_RELATION_KEYS = ("parents", "spouse", "children")


def new_id() -> str:
    return str(uuid.uuid4())


class Phone(BaseModel):
    number: str
    type: PhoneType = PhoneType.MOBILE


class ContactInfo(BaseModel):
    emails: list[str] = Field(default_factory=list)
    phones: list[Phone] = Field(default_factory=list)
    address: Optional[str] = None


class Relationship(BaseModel):
    id: str = Field(default_factory=new_id)
    type: RelType
    person_id: str


class Person(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    date_of_birth: dt.date
    death_date: Optional[dt.date] = None
    gender: Gender
    location: Optional[str] = None
    profession: Optional[str] = None
    biography: Optional[str] = None
    photo: Optional[str] = None
    contact_info: Optional[ContactInfo] = None
    is_main_user: bool = False
    relationships: list[Relationship] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_arrays(cls, data):
        # parents/spouse/children id lists are folded into the typed list here and nowhere else
        if not isinstance(data, dict) or not any(k in data for k in LEGACY_RELATION_KEYS):
            return data
        from . import relations
        data = dict(data)
        legacy = {k: data.pop(k) or [] for k in LEGACY_RELATION_KEYS if k in data}
        data["relationships"] = (
            list(data.get("relationships") or []) + relations.relationships_from_arrays(**legacy)
        )
        return data

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("death_date", "location", "profession", "biography", "photo", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def check_dates(self):
        if self.death_date is not None and self.death_date < self.date_of_birth:
            raise ValueError("death_date must not precede date_of_birth")
        return self

    @property
    def is_deceased(self) -> bool:
        return self.death_date is not None

    def related_ids(self, rel_type: RelType) -> list[str]:
        return [r.person_id for r in self.relationships if r.type == rel_type]


class FamilyNode(Person):
    """Person plus layout coordinates owned by the renderer."""
    x: Optional[float] = None
    y: Optional[float] = None
    fx: Optional[float] = None
    fy: Optional[float] = None


class FamilyLink(BaseModel):
    source: str
    target: str
    type: LinkType


class GraphOut(BaseModel):
    nodes: list[FamilyNode]
    links: list[FamilyLink]


class PathOut(BaseModel):
    path: list[str]


class Event(BaseModel):
    id: str
    type: EventType
    title: str
    date: dt.date
    person_id: str
    description: Optional[str] = None


class Activity(BaseModel):
    id: str
    type: ActivityType
    description: str
    timestamp: str
    person_id: str = ""


class NameCount(BaseModel):
    name: str
    count: int


class FamilyStatistics(BaseModel):
    total_members: int
    living_members: int
    deceased_members: int
    average_age: Optional[float]
    gender_distribution: dict[str, int]
    age_group_distribution: dict[str, int]
    common_first_names: list[NameCount]
    common_last_names: list[NameCount]


class TimelineEntry(BaseModel):
    person_id: str
    name: str
    date_of_birth: dt.date
    death_date: Optional[dt.date] = None
    age: int


# ── Request bodies ──

class LoginRequest(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("username must not be empty")
        return v


class SignupRequest(LoginRequest):
    name: str
    date_of_birth: dt.date
    gender: Gender


class SetupRequest(SignupRequest):
    setup_token: Optional[str] = None


class RelativeCreate(BaseModel):
    """A new person created as a relative of an existing one."""
    type: RelType
    name: str
    date_of_birth: dt.date
    gender: Gender


class RelCreate(BaseModel):
    person_id: str
    other_person_id: str
    type: RelType

    @field_validator("other_person_id")
    @classmethod
    def validate_other(cls, v, info):
        if v == info.data.get("person_id"):
            raise ValueError("a person cannot be related to themselves")
        return v


class UserOut(BaseModel):
    id: str
    username: str
    person_id: str = ""
    created_at: str
