"""Core entity models for the scrapbook archive.

A Memory is a single recorded moment: a photo, video, audio clip or text
entry with its metadata. An Album is a named, ordered list of Memory ids.

Both models accept snake_case field names in Python and camelCase names (the
persisted record layout) on input, and serialize with camelCase so the stored
records keep the same shape as the original browser archive.

Example:
    >>> memory = Memory(
    ...     title="Sunset at the pier",
    ...     date=datetime(2024, 7, 15, tzinfo=timezone.utc),
    ...     type=MemoryType.PHOTO,
    ...     tags=["beach", "summer"],
    ... )
    >>> record = memory.to_record()
    >>> record["isLiked"]
    False
"""

import uuid as uuid_module
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Self, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from scrapbook.errors import ValidationError


# =============================================================================
# Enums
# =============================================================================


class MemoryType(str, Enum):
    """Kinds of memory the archive can hold.

    Attributes:
        PHOTO: Still image, stored behind ``media_url``.
        VIDEO: Video clip, stored behind ``media_url``.
        AUDIO: Voice note or recording, stored behind ``media_url``.
        TEXT: Written entry, body kept in ``content``.
    """

    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"

    @property
    def has_media(self) -> bool:
        """Whether memories of this type reference stored media."""
        return self is not MemoryType.TEXT


class MoodType(str, Enum):
    """Optional mood tag chosen by the user."""

    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    CALM = "calm"
    EXCITED = "excited"
    NEUTRAL = "neutral"


# =============================================================================
# Helpers
# =============================================================================


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a collision-resistant identifier (UUIDv4, 122 random bits)."""
    return str(uuid_module.uuid4())


def coerce_datetime(v: Any) -> Any:
    """Turn a bare date into midnight UTC; leave everything else to pydantic."""
    if isinstance(v, date) and not isinstance(v, datetime):
        return datetime.combine(v, time.min, tzinfo=timezone.utc)
    return v


def ensure_aware(v: datetime | None) -> datetime | None:
    """Interpret naive datetimes as UTC and convert aware ones to UTC.

    Stored timestamps all end in the same offset, so their ISO strings sort
    in time order.
    """
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class ArchiveModel(BaseModel):
    """Shared configuration for persisted entities."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "ignore",
    }

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted record layout (camelCase, ISO-8601 dates)."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Memory
# =============================================================================


class Memory(ArchiveModel):
    """A single recorded moment.

    ``id``, ``type`` and ``created_at`` are fixed once the memory exists; the
    repository enforces that on update. A time capsule must carry an
    ``unlock_date``.
    """

    id: str = Field(default_factory=new_id)
    title: str
    description: str | None = None
    date: datetime
    location: str | None = None
    tags: list[str] = Field(default_factory=list)
    type: MemoryType
    content: str | None = None
    media_url: str | None = None
    is_time_capsule: bool = False
    unlock_date: datetime | None = None
    mood: MoodType | None = None
    is_liked: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    applied_filter: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def generate_id_if_empty(cls, v: Any) -> Any:
        if not v:
            return new_id()
        return v

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Title must not be empty")
        return stripped

    @field_validator("description", "location", "content", "media_url", "applied_filter")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Strip whitespace and convert empty strings to None."""
        if v is None:
            return None
        stripped = v.strip()
        return stripped if stripped else None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        seen: set[str] = set()
        tags = []
        for tag in v:
            name = tag.strip()
            if not name:
                raise ValueError("Tags must not be empty")
            if name in seen:
                raise ValueError(f"Duplicate tag: {name}")
            seen.add(name)
            tags.append(name)
        return tags

    @field_validator("date", "unlock_date", "created_at", "updated_at", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @field_validator("date", "unlock_date", "created_at", "updated_at")
    @classmethod
    def dates_timezone_aware(cls, v: datetime | None) -> datetime | None:
        return ensure_aware(v)

    @model_validator(mode="after")
    def capsule_needs_unlock_date(self) -> Self:
        if self.is_time_capsule and self.unlock_date is None:
            raise ValueError("A time capsule requires an unlock date")
        return self

    def matches(self, query: str) -> bool:
        """Case-insensitive match against title, description and tags."""
        needle = query.lower()
        if needle in self.title.lower():
            return True
        if self.description and needle in self.description.lower():
            return True
        return any(needle in tag.lower() for tag in self.tags)


# =============================================================================
# Album
# =============================================================================


class Album(ArchiveModel):
    """A named, ordered collection of Memory ids without duplicates."""

    id: str = Field(default_factory=new_id)
    title: str
    description: str | None = None
    cover_url: str | None = None
    memories: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("id", mode="before")
    @classmethod
    def generate_id_if_empty(cls, v: Any) -> Any:
        if not v:
            return new_id()
        return v

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Title must not be empty")
        return stripped

    @field_validator("description", "cover_url")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        stripped = v.strip()
        return stripped if stripped else None

    @field_validator("memories")
    @classmethod
    def no_duplicate_members(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("An album cannot list the same memory twice")
        return v

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def dates_timezone_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)


# =============================================================================
# Construction helpers
# =============================================================================

ModelT = TypeVar("ModelT", bound=ArchiveModel)


def build(model_cls: type[ModelT], data: Mapping[str, Any]) -> ModelT:
    """Validate ``data`` into ``model_cls``, raising the archive's ValidationError.

    Args:
        model_cls: Memory or Album.
        data: Field values keyed by field name or camelCase alias.

    Returns:
        A validated model instance.

    Raises:
        ValidationError: If any field is missing or malformed.
    """
    try:
        return model_cls.model_validate(dict(data))
    except PydanticValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        details = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(
            f"Invalid {model_cls.__name__.lower()}: {details}",
            fields=[f for f in fields if f],
        ) from e


def normalize_changes(model_cls: type[ArchiveModel], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Map field names or aliases in ``changes`` onto canonical field names.

    Raises:
        ValidationError: If a key names no field of ``model_cls``.
    """
    by_alias = {info.alias: name for name, info in model_cls.model_fields.items() if info.alias}
    normalized: dict[str, Any] = {}
    unknown = []
    for key, value in changes.items():
        if key in model_cls.model_fields:
            normalized[key] = value
        elif key in by_alias:
            normalized[by_alias[key]] = value
        else:
            unknown.append(key)
    if unknown:
        raise ValidationError(
            f"Unknown {model_cls.__name__.lower()} field(s): {', '.join(sorted(unknown))}",
            fields=unknown,
        )
    return normalized
