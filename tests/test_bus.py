import asyncio
import logging

import pytest

from rfm69.radio.base import PollTimeout
from rfm69.radio.bus import RegisterBus, wait_for


class RecordingTransport:
    def __init__(self, value: int = 0):
        self.value = value
        self.sent = []

    async def transfer(self, data: bytes) -> bytes:
        self.sent.append(bytes(data))
        return bytes([0]) + bytes([self.value] * (len(data) - 1))


def test_write_sets_write_flag():
    transport = RecordingTransport()

    asyncio.run(RegisterBus(transport).write_reg(0x2F, 0xAA))

    assert transport.sent == [bytes([0xAF, 0xAA])]


def test_read_returns_second_reply_byte():
    transport = RecordingTransport(value=0x5C)

    value = asyncio.run(RegisterBus(transport).read_reg(0xA7))

    assert value == 0x5C
    assert transport.sent == [bytes([0x27, 0x00])]


def test_update_keeps_masked_bits():
    transport = RecordingTransport(value=0b1111_0000)

    asyncio.run(RegisterBus(transport).update_reg(0x01, 0xE3, 0x10))

    assert transport.sent[-1] == bytes([0x81, 0b1110_0000 | 0x10])


def test_read_burst_strips_address_byte():
    transport = RecordingTransport(value=7)

    data = asyncio.run(RegisterBus(transport).read_burst(0x00, 3))

    assert data == bytes([7, 7, 7])
    assert transport.sent == [bytes([0x00, 0, 0, 0])]


def test_transfer_logged_only_at_debug(caplog):
    transport = RecordingTransport(value=0x10)
    bus = RegisterBus(transport)

    with caplog.at_level(logging.INFO, logger="rfm69.radio.bus"):
        asyncio.run(bus.read_reg(0x01))
    assert not [r for r in caplog.records if r.name == "rfm69.radio.bus"]

    with caplog.at_level(logging.DEBUG, logger="rfm69.radio.bus"):
        asyncio.run(bus.read_reg(0x01))
    assert [r.getMessage() for r in caplog.records if r.name == "rfm69.radio.bus"] == ["SPI 01 00 -> 00 10"]


def test_wait_for_checks_immediately():
    calls = []

    async def ready():
        calls.append(1)
        return True

    asyncio.run(wait_for(ready, timeout_ms=50, interval_ms=10))

    assert len(calls) == 1


def test_wait_for_polls_until_true():
    calls = []

    async def third_time():
        calls.append(1)
        return len(calls) >= 3

    asyncio.run(wait_for(third_time, timeout_ms=200, interval_ms=1))

    assert len(calls) == 3


def test_wait_for_times_out():
    async def never():
        return False

    async def scenario():
        loop = asyncio.get_running_loop()
        start = loop.time()
        with pytest.raises(PollTimeout):
            await wait_for(never, timeout_ms=30, interval_ms=2)
        return loop.time() - start

    elapsed = asyncio.run(scenario())

    assert elapsed >= 0.025


def test_wait_for_does_not_interrupt_running_predicate():
    finished = []

    async def slow():
        await asyncio.sleep(0.05)
        finished.append(1)
        return False

    with pytest.raises(PollTimeout):
        asyncio.run(wait_for(slow, timeout_ms=10, interval_ms=2))

    assert finished == [1]
