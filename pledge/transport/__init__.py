"""
Pledge Transport Layer.

Abstracts the concrete channel from the protocol layer.
"""
from .interface import IChannel

__all__ = [
    "IChannel",
]
