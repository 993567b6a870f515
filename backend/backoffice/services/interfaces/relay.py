"""
Realtime relay interface.
Decides how a published frame reaches the subscribers of every API worker.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backoffice.realtime.broker import RealtimeBroker


class EventRelay(ABC):
    """
    Transport between `RealtimeBroker.publish` and `RealtimeBroker.deliver`.

    Implementations:
    - LocalRelay: deliver inside this process (single worker, tests)
    - RedisRelay: Redis pub/sub so all workers see every frame
    """

    name = "abstract"

    def bind(self, broker: "RealtimeBroker") -> None:
        self.broker = broker

    @abstractmethod
    def send(self, frame: dict) -> None:
        """
        Hand off a frame for delivery.

        Must not block and must not wait for subscribers. May raise; the
        broker logs and discards the failure.
        """
        pass

    async def start(self) -> None:
        """Start background work. Called once from the application lifespan."""
        pass

    async def stop(self) -> None:
        """Stop background work."""
        pass
