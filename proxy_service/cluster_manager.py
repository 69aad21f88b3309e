from contextlib import contextmanager
from typing import Iterator

from pymongo import MongoClient

from config import Settings
from logger import logger


def _mask_uri(mongo_uri: str) -> str:
    """Hide credentials before a URI goes anywhere near a log line."""
    scheme, sep, rest = mongo_uri.partition("://")
    authority, slash, tail = rest.partition("/")
    if "@" not in authority:
        return mongo_uri
    return f"{scheme}{sep}***@{authority.rsplit('@', 1)[1]}{slash}{tail}"


@contextmanager
def open_client(mongo_uri: str, settings: Settings) -> Iterator[MongoClient]:
    """Open a dedicated client for one request and always close it.

    Clients are never shared: the target URI changes per request.
    """
    client = MongoClient(
        mongo_uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        connectTimeoutMS=settings.connect_timeout_ms,
        socketTimeoutMS=settings.socket_timeout_ms,
    )
    try:
        client.server_info()  # force connection test
        logger.debug("Connected to %s", _mask_uri(mongo_uri))
        yield client
    finally:
        client.close()
        logger.debug("Closed connection to %s", _mask_uri(mongo_uri))
