"""
Pledge Adapters - channel implementations for concrete transports.
"""
from .loopback import LoopbackChannel, LoopbackLink

__all__ = [
    "LoopbackChannel",
    "LoopbackLink",
]
