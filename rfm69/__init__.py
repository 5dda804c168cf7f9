"""
rfm69 - Async driver for RFM69 sub-GHz FSK packet radios

Addressed packets with hardware CRC, carrier-sense before transmit, and
power / frequency / AES management over SPI.

This package contains:
- radio/     : Driver, register bus, event streams, simulated chip, SPI adapters
- registers  : RFM69 register map and init table
- config     : TOML configuration
- main       : rfm69ctl command-line tool
"""

__version__ = "0.1.0"
__author__ = "rfm69-radio contributors"

from .radio import (
    Band,
    InterruptLine,
    Mode,
    RadioConfig,
    RadioError,
    ReceivedPacket,
    Rfm69Radio,
    SimulatedRfm69,
)

__all__ = [
    'Band',
    'InterruptLine',
    'Mode',
    'RadioConfig',
    'RadioError',
    'ReceivedPacket',
    'Rfm69Radio',
    'SimulatedRfm69',
]
