from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Generic, TypeVar

from pydantic import BaseModel

if TYPE_CHECKING:
    from services.bridge import Bridge

T = TypeVar("T", bound=BaseModel)

# Seconds to wait before reconnecting a dropped socket
RECONNECT_DELAY = 5


class BaseDriver(ABC, Generic[T]):
    """Abstract base class for the chat and game side drivers."""

    name: str = "driver"

    def __init__(self, config: T, bridge: "Bridge"):
        self.config: T = config
        self.bridge = bridge

    @abstractmethod
    async def start(self):
        """Register with the bridge, connect and begin listening.
        Loops indefinitely, reconnecting on failure."""
