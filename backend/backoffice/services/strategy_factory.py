"""
Realtime relay factory.
Configures how published frames reach the websocket clients.
"""

from backoffice.core.config import get_settings
from backoffice.services.interfaces.relay import EventRelay
from backoffice.services.interfaces.local_relay import LocalRelay
from backoffice.services.relay_service import RedisRelay


def get_relay_strategy() -> EventRelay:
    """
    Build the configured relay.

    - local: single worker, tests (default)
    - redis: several workers behind a load balancer

    Selected by the REALTIME_RELAY env var.
    """
    settings = get_settings()
    if settings.REALTIME_RELAY == "redis":
        return RedisRelay()
    return LocalRelay()
