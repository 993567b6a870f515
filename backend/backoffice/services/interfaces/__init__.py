"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .relay import EventRelay
from .local_relay import LocalRelay

__all__ = ['EventRelay', 'LocalRelay']
