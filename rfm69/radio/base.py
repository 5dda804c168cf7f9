"""
RFM69 Radio Base Types

Defines the errors, enumerations, configuration and packet types shared by
the radio driver, its transports and the simulated radio, plus the abstract
interface the driver implements.

Design Principles:
- Async interface (one event loop owns the bus)
- One exception hierarchy rooted at RadioError
- Immutable configuration
- State tracking with statistics
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from typing import Optional, Protocol, Tuple

from .. import registers as reg


class RadioError(Exception):
    """Exception raised for radio-related errors."""
    pass


class NotInitialized(RadioError):
    """Operation requires a running session; call init() first."""
    pass


class AlreadyInitialized(RadioError):
    """init() called on a running session; call stop() first."""
    pass


class ModeReadyTimeout(RadioError):
    """
    ModeReady flag never set after a mode change.

    The driver's idea of the current mode is stale after this; the session
    should be stopped and initialized again.
    """
    pass


class PacketTooBig(RadioError):
    """Payload exceeds the FIFO budget."""

    def __init__(self, size: int):
        self.size = size
        super().__init__(f"radio packet size too big: {size} > {reg.MAX_PAYLOAD}")


class TxInterruptTimeout(RadioError):
    """PacketSent interrupt not observed after entering TX."""
    pass


class RssiTimeout(RadioError):
    """Forced RSSI measurement never completed."""
    pass


class InvalidKeyLength(RadioError):
    """AES key is not 16 bytes long."""

    def __init__(self, length: int):
        self.length = length
        super().__init__(f"AES key must be {reg.AES_KEY_SIZE} bytes, got {length}")


class PollTimeout(RadioError):
    """Condition not met within the poll budget."""

    def __init__(self, timeout_ms: float):
        self.timeout_ms = timeout_ms
        super().__init__(f"condition not met within {timeout_ms} ms")


class Mode(IntEnum):
    """Operating mode; values are the RegOpMode mode bits."""
    SLEEP = reg.RF_OPMODE_SLEEP
    STANDBY = reg.RF_OPMODE_STANDBY
    SYNTH = reg.RF_OPMODE_SYNTHESIZER
    TX = reg.RF_OPMODE_TRANSMITTER
    RX = reg.RF_OPMODE_RECEIVER


_FRF = {
    315: (0x4E, 0xC0, 0x00),
    433: (0x6C, 0x40, 0x00),
    868: (0xD9, 0x00, 0x00),
    915: (0xE4, 0xC0, 0x00),
}


class Band(IntEnum):
    """Frequency band; values are the nominal frequency in MHz."""
    MHZ_315 = 315
    MHZ_433 = 433
    MHZ_868 = 868
    MHZ_915 = 915

    @property
    def frf(self) -> Tuple[int, int, int]:
        """FRF register triplet (MSB, MID, LSB) for this band."""
        return _FRF[self.value]


class Session(Enum):
    """Driver session state."""
    UNINITIALIZED = auto()
    RUNNING = auto()


@dataclass(frozen=True)
class RadioConfig:
    """
    Radio configuration.

    Fixed for the lifetime of a driver instance.
    """
    # Own address, used for hardware address filtering
    node_id: int = 1

    # Network id, second sync word byte
    network_id: int = 1

    band: Band = Band.MHZ_433

    # RFM69HW/HCW boards have the +20 dBm PA1/PA2 stages
    is_high_power: bool = True

    def __post_init__(self):
        for name in ("node_id", "network_id"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFF:
                raise ValueError(f"Invalid {name}: {value}")
        # Accept plain ints (e.g. 915) for the band
        object.__setattr__(self, "band", Band(self.band))


@dataclass(frozen=True)
class ReceivedPacket:
    """
    Packet received from the air.

    Includes the addressing header and signal metadata.
    """
    # Packet payload
    data: bytes

    # Sender node address
    sender: int

    # Received Signal Strength Indicator (dBm, <= 0)
    rssi: float

    # Target address from the header
    target: int = 0

    # Receive timestamp (Unix time with microseconds)
    timestamp: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        """Payload size in bytes."""
        return len(self.data)


class Transport(Protocol):
    """
    Full-duplex byte transfer.

    The reply has the same length as the request; its first byte is
    whatever was on the bus before the call.
    """

    async def transfer(self, data: bytes) -> bytes:
        ...


class BaseRadio(ABC):
    """
    Abstract base class for packet radio drivers.

    Usage:
        radio = ConcreteRadio(transport, interrupt, RadioConfig())
        await radio.init()
        await radio.send(2, b"hello")
        radio.stop()
    """

    def __init__(self, name: str = "radio"):
        """
        Initialize radio base class.

        Args:
            name: Human-readable name for this radio instance
        """
        self.name = name
        self._session = Session.UNINITIALIZED

        # Statistics
        self._packets_sent = 0
        self._packets_received = 0
        self._tx_errors = 0
        self._rx_errors = 0

    @property
    def session(self) -> Session:
        """Current session state."""
        return self._session

    @property
    def is_initialized(self) -> bool:
        """Whether a session is running."""
        return self._session is Session.RUNNING

    @abstractmethod
    async def init(self) -> None:
        """
        Program the radio and start the session.

        Raises:
            AlreadyInitialized: If a session is already running
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """
        End the session.

        Raises:
            NotInitialized: If no session is running
        """
        pass

    @abstractmethod
    async def send(self, to: int, payload: bytes) -> None:
        """
        Transmit a packet to a node address.

        Raises:
            RadioError: If transmission fails
        """
        pass

    @abstractmethod
    async def sleep(self) -> None:
        """Put radio into low-power sleep mode."""
        pass

    def get_statistics(self) -> dict:
        """
        Get radio statistics.

        Returns:
            dict: Statistics including packets sent/received, errors
        """
        return {
            "name": self.name,
            "state": self._session.name,
            "packets_sent": self._packets_sent,
            "packets_received": self._packets_received,
            "tx_errors": self._tx_errors,
            "rx_errors": self._rx_errors,
        }

    def _require_session(self) -> None:
        """Raise NotInitialized unless a session is running."""
        if self._session is not Session.RUNNING:
            raise NotInitialized("not initialized; call init first!")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name} state={self._session.name}>"
