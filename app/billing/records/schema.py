"""
Explicit per-entity record schemas.

A RecordSchema names the dataclass a collection holds and which of its
fields need typed conversion between the in-memory form and the JSON
document form:

- temporal fields: timezone-aware ``datetime`` in memory, ISO-8601 text on disk
- decimal fields: ``Decimal`` in memory, decimal string on disk

Schemas are validated when they are declared, so a misspelled field name
fails at import time instead of silently skipping conversion.

Usage:
    from billing.records import RecordSchema

    SUBSCRIPTION_SCHEMA = RecordSchema(
        record_type=Subscription,
        collection="subscriptions",
        temporal_fields=("start_date", "current_period_end", "created_at", "updated_at"),
        decimal_fields=("price",),
    )
"""

from __future__ import annotations

import dataclasses
import enum
import typing
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Generic, TypeVar

from django.utils.dateparse import parse_datetime

from billing.exceptions import SchemaDefinitionError

if TYPE_CHECKING:
    from typing import Any

R = TypeVar("R")


def _hint_includes(hint: Any, expected: type) -> bool:
    """True if ``hint`` is ``expected`` or a union/optional containing it."""
    if hint is expected:
        return True
    return expected in typing.get_args(hint)


def to_datetime(value: Any) -> datetime:
    """
    Normalize a temporal value to a timezone-aware datetime.

    Accepts datetimes and ISO-8601 strings. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a datetime or parseable ISO text
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"Not an ISO-8601 datetime: {value!r}")
    else:
        raise ValueError(f"Expected datetime or ISO-8601 text, got {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def to_decimal(value: Any) -> Decimal:
    """
    Normalize a numeric value to Decimal.

    Floats go through ``str`` so 19.99 stays 19.99.

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a decimal amount")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a decimal amount: {value!r}") from e


@dataclass(frozen=True)
class RecordSchema(Generic[R]):
    """
    Declares how one entity type is stored.

    Attributes:
        record_type: Dataclass of the records; must have an ``id`` field
        collection: Collection (file) name, e.g. "subscriptions"
        temporal_fields: Fields converted datetime <-> ISO-8601 text
        decimal_fields: Fields converted Decimal <-> decimal string

    Raises:
        SchemaDefinitionError: On construction, if the declaration does not
            match the record type
    """

    record_type: type[R]
    collection: str
    temporal_fields: tuple[str, ...] = ()
    decimal_fields: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not dataclasses.is_dataclass(self.record_type):
            raise SchemaDefinitionError(
                f"{self.record_type!r} is not a dataclass"
            )
        if not self.collection:
            raise SchemaDefinitionError("collection name is required")

        names = self.field_names
        if "id" not in names:
            raise SchemaDefinitionError(
                f"{self.record_type.__name__} has no 'id' field"
            )

        hints = typing.get_type_hints(self.record_type)
        for name in self.temporal_fields:
            if name not in names:
                raise SchemaDefinitionError(
                    f"{self.record_type.__name__} has no temporal field {name!r}"
                )
            if not _hint_includes(hints[name], datetime):
                raise SchemaDefinitionError(
                    f"{self.record_type.__name__}.{name} is not annotated as datetime"
                )
        for name in self.decimal_fields:
            if name not in names:
                raise SchemaDefinitionError(
                    f"{self.record_type.__name__} has no decimal field {name!r}"
                )
            if not _hint_includes(hints[name], Decimal):
                raise SchemaDefinitionError(
                    f"{self.record_type.__name__}.{name} is not annotated as Decimal"
                )

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in dataclasses.fields(self.record_type))

    def check_fields(self, names) -> None:
        """Raise ValueError for names the record type does not define."""
        unknown = set(names) - self.field_names
        if unknown:
            raise ValueError(
                f"Unknown {self.record_type.__name__} fields: {', '.join(sorted(unknown))}"
            )

    def normalize(self, values: dict[str, Any]) -> dict[str, Any]:
        """
        Convert typed fields of a partial field mapping to in-memory types.

        Applied identically on create, update, load and query criteria.
        ``None`` is kept as-is for optional fields.
        """
        normalized = dict(values)
        for name in self.temporal_fields:
            if normalized.get(name) is not None:
                normalized[name] = to_datetime(normalized[name])
        for name in self.decimal_fields:
            if normalized.get(name) is not None:
                normalized[name] = to_decimal(normalized[name])
        return normalized

    def to_record(self, document: dict[str, Any]) -> R:
        """Build a record from its stored JSON document."""
        self.check_fields(document)
        return self.record_type(**self.normalize(document))

    def to_document(self, record: R) -> dict[str, Any]:
        """Serialize a record to a JSON-compatible document."""
        document = {}
        for f in dataclasses.fields(self.record_type):
            value = getattr(record, f.name)
            if value is None:
                document[f.name] = None
            elif f.name in self.temporal_fields:
                document[f.name] = value.isoformat()
            elif f.name in self.decimal_fields:
                document[f.name] = str(value)
            elif isinstance(value, enum.Enum):
                document[f.name] = value.value
            elif isinstance(value, tuple):
                document[f.name] = list(value)
            else:
                document[f.name] = value
        return document
