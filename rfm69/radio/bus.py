"""
RFM69 Register Bus

Single-register access over a full-duplex transport, and the bounded
poll-until-true helper every timed wait in the driver goes through.

Wire format:
- write: [address | 0x80, value, ...]
- read:  [address & 0x7F, 0x00, ...]; reply bytes 1.. hold the values
"""

import asyncio
import logging
from typing import Awaitable, Callable

from .. import registers as reg
from .base import PollTimeout, Transport

logger = logging.getLogger(__name__)


async def wait_for(
    predicate: Callable[[], Awaitable[bool]],
    timeout_ms: float = 50,
    interval_ms: float = 2,
) -> None:
    """
    Poll an async predicate until it returns True.

    The predicate is evaluated immediately, then once per interval. An
    evaluation that is already running is never interrupted; the timeout
    is checked between evaluations.

    Args:
        predicate: Async callable returning True when the condition holds
        timeout_ms: Total budget in milliseconds
        interval_ms: Delay between evaluations in milliseconds

    Raises:
        PollTimeout: If the condition did not hold within the budget
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000.0
    while True:
        if await predicate():
            return
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise PollTimeout(timeout_ms)
        await asyncio.sleep(min(interval_ms / 1000.0, remaining))


class RegisterBus:
    """
    Register access on top of a transport.

    Transfers are serialized; the transport never sees two outstanding
    transfers even when several tasks use the bus.
    """

    def __init__(self, transport: Transport):
        self._transport = transport
        self._lock = asyncio.Lock()

    async def transfer(self, data: bytes) -> bytes:
        """Run one raw transfer and return the reply."""
        async with self._lock:
            reply = await self._transport.transfer(bytes(data))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"SPI {bytes(data).hex(' ')} -> {bytes(reply).hex(' ')}")
        return bytes(reply)

    async def read_reg(self, address: int) -> int:
        """Read a single register."""
        reply = await self.transfer(bytes([address & reg.ADDRESS_MASK, 0]))
        return reply[1]

    async def write_reg(self, address: int, value: int) -> None:
        """Write a single register."""
        await self.transfer(bytes([address | reg.WRITE_FLAG, value & 0xFF]))

    async def update_reg(self, address: int, mask: int, bits: int) -> None:
        """Read-modify-write: keep the bits in mask, then OR in bits."""
        value = await self.read_reg(address)
        await self.write_reg(address, (value & mask) | bits)

    async def write_burst(self, address: int, data: bytes) -> None:
        """Write consecutive bytes starting at address (or into the FIFO)."""
        await self.transfer(bytes([address | reg.WRITE_FLAG]) + bytes(data))

    async def read_burst(self, address: int, length: int) -> bytes:
        """Read length consecutive bytes starting at address (or from the FIFO)."""
        reply = await self.transfer(bytes([address & reg.ADDRESS_MASK]) + bytes(length))
        return reply[1:]

    async def has_flag(self, address: int, flag: int) -> bool:
        """Whether any bit of flag is set in the register."""
        return (await self.read_reg(address) & flag) != 0
