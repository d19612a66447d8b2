"""Document encoding for stored preference vectors and daily plan snapshots.

Records are stored as ``google.protobuf.Struct`` JSON documents.  Datetimes
travel as RFC 3339 strings produced through ``google.protobuf.Timestamp``;
numbers come back as floats and are coerced by each model's ``from_dict``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct
from google.protobuf.timestamp_pb2 import Timestamp

from routine.models import DailyPlan, PreferenceVector

# Top-level keys holding datetimes in vector and plan documents
_DATETIME_KEYS = ("last_learned_at", "generated_at")


def vector_to_struct(vector: PreferenceVector) -> Struct:
    """Encode *vector* as a Struct document."""
    return _to_struct(vector.to_dict())


def struct_to_vector(document: Struct) -> PreferenceVector:
    """Decode a Struct document into a :class:`PreferenceVector` (defaults filled)."""
    return PreferenceVector.from_dict(_from_struct(document))


def plan_to_struct(plan: DailyPlan) -> Struct:
    """Encode a daily plan snapshot as a Struct document."""
    return _to_struct(plan.to_dict())


def struct_to_plan(document: Struct) -> DailyPlan:
    """Decode a Struct document into a :class:`DailyPlan`."""
    return DailyPlan.from_dict(_from_struct(document))


def datetime_to_rfc3339(dt: datetime) -> str:
    """Convert a ``datetime`` to an RFC 3339 UTC string.

    Args:
        dt: Any :class:`datetime`; naive datetimes are assumed UTC.

    Returns:
        A string such as ``"2024-06-01T12:30:00Z"``.
    """
    ts = Timestamp()
    ts.FromDatetime(dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc))
    return ts.ToJsonString()


def rfc3339_to_datetime(value: str) -> datetime:
    """Parse an RFC 3339 string into a UTC-aware ``datetime``."""
    ts = Timestamp()
    ts.FromJsonString(value)
    return datetime.fromtimestamp(ts.seconds, tz=timezone.utc).replace(
        microsecond=ts.nanos // 1000
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _to_struct(data: dict[str, Any]) -> Struct:
    data = dict(data)
    for key in _DATETIME_KEYS:
        if isinstance(data.get(key), datetime):
            data[key] = datetime_to_rfc3339(data[key])
    return json_format.ParseDict(data, Struct())


def _from_struct(document: Struct) -> dict[str, Any]:
    data = json_format.MessageToDict(document)
    for key in _DATETIME_KEYS:
        if isinstance(data.get(key), str):
            data[key] = rfc3339_to_datetime(data[key])
    return data
