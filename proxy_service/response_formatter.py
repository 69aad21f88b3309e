"""
Response formatter: builds the JSON envelopes returned by the proxy.

Driver write results are flattened into plain dicts using the field names
MongoDB clients already know (``insertedId``, ``matchedCount`` ...), and
BSON-only values are converted so the payload can be JSON-encoded.
"""

import base64
import datetime as _dt
import math
from typing import Any, Dict, Optional


def _is_result(result: Any, attribute: str) -> bool:
    return hasattr(type(result), attribute)


def serialize_result(result: Any) -> Any:
    """Turn a driver return value into a JSON-safe structure."""
    if _is_result(result, "acknowledged") and not result.acknowledged:
        return {"acknowledged": False}

    if _is_result(result, "inserted_ids"):
        return _sanitise_value({
            "acknowledged": True,
            "insertedCount": len(result.inserted_ids),
            "insertedIds": {str(i): _id for i, _id in enumerate(result.inserted_ids)},
        })

    if _is_result(result, "inserted_id"):
        return _sanitise_value({
            "acknowledged": True,
            "insertedId": result.inserted_id,
        })

    if _is_result(result, "matched_count"):
        return _sanitise_value({
            "acknowledged": True,
            "matchedCount": result.matched_count,
            "modifiedCount": result.modified_count,
            "upsertedCount": 0 if result.upserted_id is None else 1,
            "upsertedId": result.upserted_id,
        })

    if _is_result(result, "deleted_count"):
        return {"acknowledged": True, "deletedCount": result.deleted_count}

    return _sanitise_value(result)


def _sanitise_value(obj: Any) -> Any:
    """Recursively convert non-JSON-safe types to safe representations."""
    if isinstance(obj, dict):
        return {str(k): _sanitise_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitise_value(item) for item in obj]
    if isinstance(obj, (_dt.datetime, _dt.date)):
        return obj.isoformat()
    if isinstance(obj, bytes):
        try:
            return obj.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(obj).decode("ascii")
    if isinstance(obj, float) and not math.isfinite(obj):
        # NaN and Infinity have no JSON form
        return None
    if isinstance(obj, (int, float, str, bool, type(None))):
        return obj
    # ObjectId, Decimal128, UUID, Timestamp, Regex, etc.
    return str(obj)


# ---------------------- ENVELOPES ----------------------


def success_envelope(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": serialize_result(data)}


def error_envelope(error: str, details: Optional[str] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"success": False, "error": error}
    if details is not None:
        response["details"] = details
    return response
