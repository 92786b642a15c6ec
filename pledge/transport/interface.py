"""
Channel interface - the boundary to the concrete transport.

Discovery, connection setup, encryption and delivery belong to the
transport. The engine only needs to push bytes out; the transport calls
back into the engine for inbound bytes and connection lifecycle:

    engine.on_connected()
    engine.on_receive(payload)
    engine.on_disconnected(reason)
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IChannel(Protocol):
    """
    Outbound half of the transport.

    Must be non-blocking and must tolerate interleaved sends from the
    protocol machine and the liveness monitor.
    """

    def send_bytes(self, payload: bytes) -> bool:
        """
        Hand a payload to the transport.

        Returns True if accepted, False if it could not be sent. May raise
        ChannelError instead of returning False. Failures reported later
        go through ``PledgeEngine.report_send_failure()``.
        """
        ...
