"""
Request validator: turns the raw POST body into a ``ProxyRequest``.

Checks run in this order and stop at the first failure:
- body present and decodable as a JSON object
- ``targetUri``, ``operation`` and ``collectionName`` present and non-empty
- ``targetUri`` shaped like a MongoDB connection string
- database name resolvable (explicit field, URI path, or ``authSource``)

Nothing here touches the network; every failure is an ``InvalidRequest``
which the app turns into a 400.
"""

import json
import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from pydantic import BaseModel, ConfigDict, Field

from logger import logger

MONGO_URI_REGEX = re.compile(r"^mongodb(?:\+srv)?://.+$")

REQUIRED_FIELDS = ("targetUri", "operation", "collectionName")


class InvalidRequest(ValueError):
    """The caller sent something the proxy cannot act on."""


# ---------------------- REQUEST MODEL ----------------------


class ProxyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    target_uri: str = Field(alias="targetUri")
    operation: Any = None
    collection_name: str = Field(alias="collectionName")
    database_name: Optional[str] = Field(default=None, alias="databaseName")

    # operation payloads are opaque JSON handed to the driver as-is
    query: Any = None
    document: Any = None
    documents: Any = None
    update: Any = None
    options: Any = None

    def is_set(self, field_name: str) -> bool:
        """True when the field was present in the body, even as ``null``."""
        return field_name in self.model_fields_set


# ---------------------- BODY PARSING ----------------------


def parse_body(raw: bytes) -> Dict[str, Any]:
    if not raw or not raw.strip():
        raise InvalidRequest("Missing request body")
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug("Body parsing error: %s", e)
        raise InvalidRequest("Invalid JSON body")
    if not isinstance(payload, dict):
        raise InvalidRequest("Invalid JSON body")
    return payload


# ---------------------- FIELD VALIDATION ----------------------


def _missing_fields(payload: Dict[str, Any]) -> List[str]:
    return [name for name in REQUIRED_FIELDS if not payload.get(name)]


def validate_request(payload: Dict[str, Any]) -> ProxyRequest:
    missing = _missing_fields(payload)
    if missing:
        raise InvalidRequest(
            f"Missing required fields in body: {', '.join(missing)}"
        )

    target_uri = payload["targetUri"]
    if not isinstance(target_uri, str) or not MONGO_URI_REGEX.match(target_uri):
        raise InvalidRequest(
            "Invalid targetUri format. Must be a valid MongoDB connection string."
        )

    if not isinstance(payload["collectionName"], str):
        raise InvalidRequest("collectionName must be a string")

    data = dict(payload)
    if not data.get("databaseName"):
        data.pop("databaseName", None)
    elif not isinstance(data["databaseName"], str):
        raise InvalidRequest("databaseName must be a string")

    return ProxyRequest.model_validate(data)


# ---------------------- DATABASE NAME ----------------------


def _auth_source(query_string: str) -> Optional[str]:
    values = parse_qs(query_string).get("authSource")
    return values[0] if values else None


def resolve_database_name(target_uri: str, database_name: Optional[str] = None) -> str:
    """Pick the database for this request.

    Priority:
      1. explicit ``databaseName``
      2. first path segment of ``targetUri`` (``mongodb://host/mydb``)
      3. ``authSource`` option (``mongodb+srv://host/?authSource=admin``)
    """
    if database_name:
        return database_name

    try:
        parts = urlsplit(target_uri)
        auth_source = _auth_source(parts.query)
    except ValueError as e:
        logger.debug("Error parsing targetUri: %s", e)
        raise InvalidRequest("Could not parse targetUri to determine database name.")

    segment = unquote(parts.path.lstrip("/").split("/", 1)[0])
    if segment:
        return segment
    if auth_source:
        return auth_source

    raise InvalidRequest(
        "Could not determine database name from targetUri. "
        "Please provide databaseName in the request body."
    )
