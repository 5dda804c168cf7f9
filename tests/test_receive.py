import asyncio

import pytest

from rfm69 import registers as reg
from rfm69.radio import Mode, RssiTimeout, SimulatorConfig


def test_receive_end_to_end(make_bench):
    async def scenario():
        bench = make_bench()
        await bench.radio.init()
        with bench.radio.packets.subscribe() as packets:
            await bench.radio.start_receive()
            bench.chip.inject(bytes([5, 1, 5, 0]) + bytes([9, 9, 9]))
            packet = await asyncio.wait_for(packets.get(), 1)
            await asyncio.sleep(0.01)
            extra = packets.pending()
        bench.radio.stop()
        return packet, extra, bench.radio.mode

    packet, extra, mode = asyncio.run(scenario())

    assert packet.data == bytes([9, 9, 9])
    assert packet.sender == 5
    assert packet.target == 1
    assert packet.rssi <= 0
    assert extra == 0
    assert mode is Mode.RX


def test_rssi_comes_from_register(make_bench):
    async def scenario():
        bench = make_bench(sim_config=SimulatorConfig(rssi_dbm=-72.5))
        await bench.radio.init()
        with bench.radio.packets.subscribe() as packets:
            await bench.radio.start_receive()
            bench.chip.inject(bytes([3, 1, 4, 0, 0xAB]))
            packet = await asyncio.wait_for(packets.get(), 1)
        bench.radio.stop()
        return packet

    packet = asyncio.run(scenario())

    assert packet.rssi == -72.5
    assert packet.data == bytes([0xAB])


def test_interrupt_outside_rx_does_nothing(make_bench):
    async def scenario():
        bench = make_bench()
        await bench.radio.init()
        with bench.radio.packets.subscribe() as packets:
            bench.chip.clear_log()
            bench.line.fire()
            await asyncio.sleep(0.01)
            log, pending = list(bench.chip.log), packets.pending()
        bench.radio.stop()
        return log, pending

    assert asyncio.run(scenario()) == ([], 0)


def test_interrupt_without_payload_ready_reads_only_flags(make_bench):
    async def scenario():
        bench = make_bench()
        await bench.radio.init()
        await bench.radio.start_receive()
        with bench.radio.packets.subscribe() as packets:
            bench.chip.clear_log()
            bench.line.fire()
            await asyncio.sleep(0.01)
            log, pending = list(bench.chip.log), packets.pending()
        bench.radio.stop()
        return log, pending

    log, pending = asyncio.run(scenario())

    assert log == [bytes([reg.REG_IRQFLAGS2, 0])]
    assert pending == 0


def test_short_frame_takes_rx_restart_path(make_bench):
    async def scenario():
        bench = make_bench()
        await bench.radio.init()
        await bench.radio.start_receive()
        before = bench.chip.rx_restarts
        with bench.radio.packets.subscribe() as packets:
            bench.chip.inject(bytes([2, 1, 5, 0, 7]))
            await asyncio.sleep(0.02)
            pending = packets.pending()
        bench.radio.stop()
        return bench.chip.rx_restarts - before, pending, bench.radio.mode, bench.radio.get_statistics()

    restarts, pending, mode, stats = asyncio.run(scenario())

    assert restarts == 1
    assert pending == 0
    assert mode is Mode.RX
    assert stats["rx_errors"] == 1


def test_declared_length_clamped_to_fifo_size(make_bench):
    body = bytes(range(64))

    async def scenario():
        bench = make_bench()
        await bench.radio.init()
        with bench.radio.packets.subscribe() as packets:
            await bench.radio.start_receive()
            bench.chip.inject(bytes([200, 1, 5, 0]) + body)
            packet = await asyncio.wait_for(packets.get(), 1)
        bench.radio.stop()
        return packet

    assert asyncio.run(scenario()).data == body


def test_interrupt_burst_handled_one_at_a_time(make_bench):
    async def scenario():
        bench = make_bench()
        await bench.radio.init()
        with bench.radio.packets.subscribe() as packets:
            await bench.radio.start_receive()
            bench.chip.inject(bytes([4, 1, 6, 0, 1, 2]))
            bench.line.fire()
            bench.line.fire()
            await asyncio.sleep(0.02)
            received = [await packets.get() for _ in range(packets.pending())]
        bench.radio.stop()
        return received

    received = asyncio.run(scenario())

    assert [p.data for p in received] == [bytes([1, 2])]


def test_every_subscriber_sees_the_packet(make_bench):
    async def scenario():
        bench = make_bench()
        await bench.radio.init()
        first = bench.radio.packets.subscribe()
        await bench.radio.start_receive()
        bench.chip.inject(bytes([3, 1, 2, 0, 0x11]))
        a = await asyncio.wait_for(first.get(), 1)
        second = bench.radio.packets.subscribe()
        bench.chip.inject(bytes([3, 1, 2, 0, 0x22]))
        b = await asyncio.wait_for(first.get(), 1)
        c = await asyncio.wait_for(second.get(), 1)
        bench.radio.stop()
        return a.data, b.data, c.data

    assert asyncio.run(scenario()) == (b"\x11", b"\x22", b"\x22")


def test_forced_rssi_read(make_bench):
    async def scenario():
        bench = make_bench(sim_config=SimulatorConfig(rssi_dbm=-80))
        await bench.radio.init()
        value = await bench.radio.read_rssi(force_trigger=True)
        bench.radio.stop()
        return value, bench.chip.writes_to(reg.REG_RSSICONFIG)

    value, triggers = asyncio.run(scenario())

    assert value == -80
    assert triggers == [bytes([reg.RF_RSSI_START])]


def test_forced_rssi_timeout(make_bench):
    async def scenario():
        bench = make_bench(sim_config=SimulatorConfig(rssi_ready=False))
        await bench.radio.init()
        with pytest.raises(RssiTimeout):
            await bench.radio.read_rssi(force_trigger=True)
        bench.radio.stop()

    asyncio.run(scenario())
