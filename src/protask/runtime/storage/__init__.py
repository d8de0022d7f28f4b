"""Task store repositories, container and gateway."""

from .container import Container
from .gateway import StoreGateway

__all__ = ["Container", "StoreGateway"]
