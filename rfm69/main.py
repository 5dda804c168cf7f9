#!/usr/bin/env python3
"""
rfm69ctl - RFM69 radio command-line tool

Usage:
    rfm69ctl listen [--seconds N]     - Print received packets
    rfm69ctl send TO PAYLOAD [--hex]  - Send a packet to node TO
    rfm69ctl freq [HZ]                - Show or set the carrier frequency
    rfm69ctl power LEVEL              - Set output power (0-31)

Pass --simulate to run against the in-process simulated chip.
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from . import __version__
from .config import Config, DEFAULT_CONFIG_PATH
from .radio.base import RadioError
from .radio.events import InterruptLine
from .radio.loopback import SimulatedRfm69
from .radio.rfm69 import Rfm69Radio


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("rfm69ctl")


@asynccontextmanager
async def open_radio(config: Config, simulate: bool = False) -> AsyncIterator[Rfm69Radio]:
    """Build, initialize and finally release a radio for the configuration."""
    line = InterruptLine()
    closers = []

    if simulate:
        logger.info("Using simulated radio")
        transport = SimulatedRfm69(line)
    else:
        from .radio.spi import GpioInterrupt, SpidevTransport

        transport = SpidevTransport(config.spi.bus, config.spi.device, config.spi.speed_hz)
        closers.append(transport.close)
        gpio = GpioInterrupt(line, config.gpio.interrupt_pin, config.gpio.reset_pin)
        closers.append(gpio.close)
        await gpio.reset()

    radio = Rfm69Radio(transport, line, config.radio_config())
    try:
        await radio.init()
        await radio.set_power_level(config.radio.power_level)
        yield radio
    finally:
        if radio.is_initialized:
            radio.stop()
        for close in reversed(closers):
            close()


async def cmd_listen(radio: Rfm69Radio, seconds: Optional[float]) -> int:
    """Print packets until the time runs out (or forever)."""
    loop = asyncio.get_running_loop()
    deadline = None if seconds is None else loop.time() + seconds

    with radio.packets.subscribe() as packets:
        await radio.start_receive()
        print(f"Listening as node {radio.config.node_id} on {await radio.get_frequency():.0f} Hz")
        while True:
            timeout = None if deadline is None else deadline - loop.time()
            if timeout is not None and timeout <= 0:
                break
            try:
                packet = await asyncio.wait_for(packets.get(), timeout)
            except asyncio.TimeoutError:
                break
            print(f"{packet.sender:>3} -> {packet.target:<3} {packet.rssi:>6.1f} dBm  {packet.data.hex(' ')}")

    stats = radio.get_statistics()
    print(f"Received {stats['packets_received']} packets")
    return 0


async def cmd_send(radio: Rfm69Radio, to: int, payload: str, as_hex: bool) -> int:
    """Send one packet."""
    data = bytes.fromhex(payload) if as_hex else payload.encode()
    await radio.send(to, data)
    print(f"Sent {len(data)} bytes to node {to}")
    return 0


async def cmd_freq(radio: Rfm69Radio, freq_hz: Optional[float]) -> int:
    """Show, and optionally set, the carrier frequency."""
    if freq_hz is not None:
        await radio.set_frequency(freq_hz)
    print(f"Frequency: {await radio.get_frequency():.0f} Hz")
    return 0


async def cmd_power(radio: Rfm69Radio, level: int) -> int:
    """Set output power."""
    await radio.set_power_level(level)
    print(f"Power level: {radio.power_level}")
    return 0


async def run(args: argparse.Namespace, config: Config) -> int:
    async with open_radio(config, simulate=args.simulate) as radio:
        if args.command == "listen":
            return await cmd_listen(radio, args.seconds)
        if args.command == "send":
            return await cmd_send(radio, args.to, args.payload, args.hex)
        if args.command == "freq":
            return await cmd_freq(radio, args.hz)
        if args.command == "power":
            return await cmd_power(radio, args.level)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rfm69ctl", description="RFM69 radio tool")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Configuration file path",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use the simulated radio instead of SPI hardware",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"rfm69ctl {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    listen = sub.add_parser("listen", help="Print received packets")
    listen.add_argument("--seconds", type=float, default=None, help="Stop after this long")

    send = sub.add_parser("send", help="Send a packet")
    send.add_argument("to", type=int, help="Destination node id")
    send.add_argument("payload", help="Payload text (or hex with --hex)")
    send.add_argument("--hex", action="store_true", help="Payload is hex encoded")

    freq = sub.add_parser("freq", help="Show or set the carrier frequency")
    freq.add_argument("hz", type=float, nargs="?", default=None, help="New frequency in Hz")

    power = sub.add_parser("power", help="Set output power")
    power.add_argument("level", type=int, help="Power level 0-31")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = Config.load(args.config)
        config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logging.getLogger().setLevel(logging.DEBUG if args.verbose else config.log_level)

    try:
        return asyncio.run(run(args, config))
    except RadioError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Invalid argument: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
