"""Remote access: TTL cache, in-flight dedup and the retrying gateway.

Usage:
    from taskflow.gateway import RemoteGateway

    gateway = RemoteGateway("http://localhost:3000/api")
    categories = await gateway.get_categories()
"""

from .cache import CacheEntry, TTLCache
from .inflight import InFlightTracker, make_request_key
from .refresh import CatalogRefresher
from .remote import CATALOG_DOCUMENTS, RemoteGateway, RequestOptions

__all__ = [
    "CATALOG_DOCUMENTS",
    "CacheEntry",
    "CatalogRefresher",
    "InFlightTracker",
    "RemoteGateway",
    "RequestOptions",
    "TTLCache",
    "make_request_key",
]
