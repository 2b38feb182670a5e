"""
helpmate/schemas/common.py

Purpose: Shared serialization helpers

- Converts MongoDB documents into JSON-safe dicts
- Exposes ``_id`` as ``id`` and ObjectIds as strings
- Strips secrets before documents leave the API
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from bson import ObjectId

HIDDEN_FIELDS = ("password",)


def _convert(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _convert(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_convert(v) for v in value]
    return value


def serialize_doc(
    doc: Optional[Dict[str, Any]],
    exclude: Iterable[str] = (),
) -> Optional[Dict[str, Any]]:
    """
    Serializes a MongoDB document for an API response.

    Args:
        doc: Raw document (may be None)
        exclude: Extra top-level fields to drop

    Returns:
        JSON-safe dict, or None when doc is None
    """
    if doc is None:
        return None

    dropped = set(HIDDEN_FIELDS) | set(exclude)
    result = {}
    for key, value in doc.items():
        if key in dropped:
            continue
        if key == "_id":
            result["id"] = _convert(value)
            continue
        result[key] = _convert(value)
    return result


def serialize_many(docs: Iterable[Dict[str, Any]], exclude: Iterable[str] = ()) -> list:
    exclude = tuple(exclude)
    return [serialize_doc(doc, exclude) for doc in docs]
