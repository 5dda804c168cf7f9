"""
RFM69 Radio Layer

- base:     errors, enums, configuration and packet types
- bus:      register access and the bounded poller
- events:   interrupt line and packet fan-out
- rfm69:    the driver
- loopback: simulated chip for tests and development
- spi:      spidev / GPIO adapters for real hardware
"""

from .base import (
    AlreadyInitialized,
    Band,
    BaseRadio,
    InvalidKeyLength,
    Mode,
    ModeReadyTimeout,
    NotInitialized,
    PacketTooBig,
    PollTimeout,
    RadioConfig,
    RadioError,
    ReceivedPacket,
    RssiTimeout,
    Session,
    Transport,
    TxInterruptTimeout,
)
from .bus import RegisterBus, wait_for
from .events import Broadcast, InterruptLine, Subscription
from .loopback import SimulatedRfm69, SimulatorConfig
from .rfm69 import Rfm69Radio

__all__ = [
    'AlreadyInitialized',
    'Band',
    'BaseRadio',
    'Broadcast',
    'InterruptLine',
    'InvalidKeyLength',
    'Mode',
    'ModeReadyTimeout',
    'NotInitialized',
    'PacketTooBig',
    'PollTimeout',
    'RadioConfig',
    'RadioError',
    'ReceivedPacket',
    'RegisterBus',
    'Rfm69Radio',
    'RssiTimeout',
    'Session',
    'SimulatedRfm69',
    'SimulatorConfig',
    'Subscription',
    'Transport',
    'TxInterruptTimeout',
    'wait_for',
]
