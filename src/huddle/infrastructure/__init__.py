"""Infrastructure layer."""

from huddle.infrastructure.persistence import Database
from huddle.infrastructure.realtime import InMemoryChangeBroker

__all__ = ["Database", "InMemoryChangeBroker"]
