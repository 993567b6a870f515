"""
Python client for the back-office API with a locally reconciled cache.

Realtime delivery is lossy, so the cache is kept current two ways: event
frames are applied as they arrive, and a "bookings changed" signal triggers
a full re-fetch.
"""

from backoffice.client.api import ApiError, BackofficeClient
from backoffice.client.cache import LocalCache, can_edit_document
from backoffice.client.feed import RealtimeFeed

__all__ = ["ApiError", "BackofficeClient", "LocalCache", "can_edit_document", "RealtimeFeed"]
