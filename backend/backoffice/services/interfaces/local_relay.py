"""
Local relay - deliver in-process.
"""

from backoffice.services.interfaces.relay import EventRelay


class LocalRelay(EventRelay):
    """
    Deliver straight to this process's subscribers.

    Use when:
    - A single API worker serves all websocket connections
    - Tests and local development
    """

    name = "local"

    def send(self, frame: dict) -> None:
        self.broker.deliver(frame)
