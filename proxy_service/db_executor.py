"""
Database executor: runs exactly one caller-described operation against one
collection.

Every supported operation is an entry in ``OPERATIONS`` pairing a payload
check with the driver call. Checks run once the connection is open but
before anything is sent to the server, so a bad payload never writes.
"""

import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from pymongo.collection import Collection

from cluster_manager import open_client
from config import Settings
from logger import logger
from request_validator import InvalidRequest, ProxyRequest

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z]+)")


# ---------------------- HELPERS ----------------------


def _or_empty(value: Any) -> Any:
    return value or {}


def _snake_case(key: str) -> str:
    """``maxTimeMS`` -> ``max_time_ms``, ``arrayFilters`` -> ``array_filters``."""
    return _CAMEL_BOUNDARY.sub(lambda m: "_" + m.group(1).lower(), key)


def _options_dict(options: Any) -> Dict[str, Any]:
    options = _or_empty(options)
    if not isinstance(options, dict):
        raise InvalidRequest("Invalid field: options must be an object")
    return options


def _driver_options(options: Any) -> Dict[str, Any]:
    """Translate caller options into pymongo keyword arguments.

    A ``sort`` object keeps its key order and becomes a list of pairs.
    """
    kwargs = {_snake_case(k): v for k, v in _options_dict(options).items()}
    if isinstance(kwargs.get("sort"), dict):
        kwargs["sort"] = list(kwargs["sort"].items())
    return kwargs


def _command_options(options: Any) -> Dict[str, Any]:
    # aggregate / count_documents pass kwargs straight into the server
    # command, which expects the camelCase names
    return dict(_options_dict(options))


# ---------------------- PAYLOAD CHECKS ----------------------


def _require_document(request: ProxyRequest) -> None:
    if not request.is_set("document"):
        raise InvalidRequest("Missing field: document for insertOne")


def _require_documents(request: ProxyRequest) -> None:
    if not isinstance(request.documents, list):
        raise InvalidRequest(
            "Missing or invalid field: documents array for insertMany"
        )


def _require_query_and_update(request: ProxyRequest) -> None:
    if not request.is_set("query") or not request.is_set("update"):
        raise InvalidRequest(
            f"Missing fields: query and update for {request.operation}"
        )


def _require_query(request: ProxyRequest) -> None:
    if not request.is_set("query"):
        raise InvalidRequest(f"Missing field: query for {request.operation}")


def _require_pipeline(request: ProxyRequest) -> None:
    if not isinstance(request.query, list):
        raise InvalidRequest(
            "Missing or invalid field: query (pipeline array) for aggregate"
        )


# ---------------------- DRIVER CALLS ----------------------


def _find(collection: Collection, request: ProxyRequest) -> List[Dict[str, Any]]:
    cursor = collection.find(_or_empty(request.query), **_driver_options(request.options))
    return list(cursor)


def _find_one(collection: Collection, request: ProxyRequest) -> Optional[Dict[str, Any]]:
    return collection.find_one(_or_empty(request.query), **_driver_options(request.options))


def _insert_one(collection: Collection, request: ProxyRequest):
    return collection.insert_one(request.document, **_driver_options(request.options))


def _insert_many(collection: Collection, request: ProxyRequest):
    return collection.insert_many(request.documents, **_driver_options(request.options))


def _update_one(collection: Collection, request: ProxyRequest):
    return collection.update_one(
        request.query, request.update, **_driver_options(request.options)
    )


def _update_many(collection: Collection, request: ProxyRequest):
    return collection.update_many(
        request.query, request.update, **_driver_options(request.options)
    )


def _delete_one(collection: Collection, request: ProxyRequest):
    return collection.delete_one(request.query, **_driver_options(request.options))


def _delete_many(collection: Collection, request: ProxyRequest):
    return collection.delete_many(request.query, **_driver_options(request.options))


def _count_documents(collection: Collection, request: ProxyRequest) -> int:
    return collection.count_documents(
        _or_empty(request.query), **_command_options(request.options)
    )


def _aggregate(collection: Collection, request: ProxyRequest) -> List[Dict[str, Any]]:
    return list(collection.aggregate(request.query, **_command_options(request.options)))


# ---------------------- DISPATCH TABLE ----------------------


class Operation(NamedTuple):
    check: Optional[Callable[[ProxyRequest], None]]
    run: Callable[[Collection, ProxyRequest], Any]


OPERATIONS: Dict[str, Operation] = {
    "find": Operation(None, _find),
    "findOne": Operation(None, _find_one),
    "insertOne": Operation(_require_document, _insert_one),
    "insertMany": Operation(_require_documents, _insert_many),
    "updateOne": Operation(_require_query_and_update, _update_one),
    "updateMany": Operation(_require_query_and_update, _update_many),
    "deleteOne": Operation(_require_query, _delete_one),
    "deleteMany": Operation(_require_query, _delete_many),
    "countDocuments": Operation(None, _count_documents),
    "aggregate": Operation(_require_pipeline, _aggregate),
}


# ---------------------- EXECUTOR ----------------------


def execute_operation(collection: Collection, request: ProxyRequest) -> Any:
    """Validate the operation payload, then run it on ``collection``.

    Raises ``InvalidRequest`` for unknown operations and missing payloads;
    driver errors propagate untouched.
    """
    operation = OPERATIONS.get(request.operation) if isinstance(request.operation, str) else None
    if operation is None:
        raise InvalidRequest(f"Unsupported operation: {request.operation}")

    if operation.check is not None:
        operation.check(request)

    return operation.run(collection, request)


def run_operation(request: ProxyRequest, database_name: str, settings: Settings) -> Any:
    """Open a client, run the request's operation and close the client."""
    with open_client(request.target_uri, settings) as client:
        collection = client[database_name][request.collection_name]
        result = execute_operation(collection, request)

    logger.info(
        "%s on %s.%s succeeded",
        request.operation, database_name, request.collection_name,
    )
    return result
