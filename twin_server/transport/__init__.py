"""
Transport boundary and reply routing.
"""
from .base import ReceiveCallback, Transport
from .router import ReceiveRouter

__all__ = [
    "ReceiveCallback",
    "Transport",
    "ReceiveRouter",
]
