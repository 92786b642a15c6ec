from .codec import (
    ControlMessage,
    Request,
    Accept,
    Reset,
    Ping,
    Pong,
    Unrecognized,
    encode,
    decode,
)
from .config import PledgeConfig, load_config
from .errors import PledgeError, ChannelError, ConfigError
from .protocol import PledgeProtocol, PledgeState, PeerState
from .liveness import LivenessMonitor, LivenessRecord
from .scheduler import ExpiryScheduler
from .timers import ITimerService, ThreadingTimerService, AsyncioTimerService, epoch_ms
from .transport import IChannel
from .engine import PledgeEngine, stdlib_logger
from .adapters import LoopbackChannel, LoopbackLink

__all__ = [
    "ControlMessage",
    "Request",
    "Accept",
    "Reset",
    "Ping",
    "Pong",
    "Unrecognized",
    "encode",
    "decode",
    "PledgeConfig",
    "load_config",
    "PledgeError",
    "ChannelError",
    "ConfigError",
    "PledgeProtocol",
    "PledgeState",
    "PeerState",
    "LivenessMonitor",
    "LivenessRecord",
    "ExpiryScheduler",
    "ITimerService",
    "ThreadingTimerService",
    "AsyncioTimerService",
    "epoch_ms",
    "IChannel",
    "PledgeEngine",
    "stdlib_logger",
    "LoopbackChannel",
    "LoopbackLink",
]

__version__ = "0.1.0"
