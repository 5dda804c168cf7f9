"""
RFM69 Simulated Radio

An in-process model of the RFM69 register file that implements the
transport interface, so the driver can run without hardware.

Useful for:
- Unit testing
- Development without hardware (rfm69ctl --simulate)

Features:
- Burst register access with address auto-increment (FIFO excepted)
- FIFO with PayloadReady / FifoNotEmpty flags
- ModeReady that can be held low to simulate a stuck chip
- Transmit on entering TX with a non-empty FIFO, followed by a DIO0 edge
- AES-128 over the message part of transmitted frames when enabled
- A log of every transfer
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .. import registers as reg
from .base import Mode
from .events import InterruptLine

logger = logging.getLogger(__name__)

# Power-on values that differ from zero
_RESET_VALUES = {
    reg.REG_OPMODE: reg.RF_OPMODE_STANDBY,
    reg.REG_PALEVEL: 0x9F,
    reg.REG_OCP: reg.RF_OCP_ON,
    reg.REG_SYNCVALUE1: 0x01,
    reg.REG_SYNCVALUE2: 0x01,
    reg.REG_PAYLOADLENGTH: 0x40,
}

AES_BLOCK_SIZE = 16


@dataclass
class SimulatorConfig:
    """Behaviour knobs for the simulated chip."""

    # Delay between entering TX and the PacketSent edge (milliseconds)
    tx_latency_ms: float = 1.0

    # Whether PacketSent raises DIO0 at all
    tx_interrupt: bool = True

    # Whether ModeReady follows mode changes
    mode_ready: bool = True

    # Whether a forced RSSI measurement completes
    rssi_ready: bool = True

    # Simulated channel level
    rssi_dbm: float = -110.0


def encrypt_message(key: bytes, frame: bytes) -> bytes:
    """
    Encrypt a frame the way the chip does on air.

    Length and address bytes stay in clear; the rest is zero padded to
    whole AES blocks and encrypted with AES-128-ECB.
    """
    header, message = frame[:2], frame[2:]
    if len(message) % AES_BLOCK_SIZE:
        message += bytes(AES_BLOCK_SIZE - len(message) % AES_BLOCK_SIZE)
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return header + encryptor.update(message) + encryptor.finalize()


class SimulatedRfm69:
    """
    Simulated RFM69 chip behind an SPI transport.

    Usage:
        line = InterruptLine()
        chip = SimulatedRfm69(line)
        radio = Rfm69Radio(chip, line)
        await radio.init()

        await radio.send(5, b"hi")
        assert chip.transmitted[-1] == bytes([4, 5, 1]) + b"hi"
    """

    def __init__(self, interrupt: InterruptLine, sim_config: SimulatorConfig = None):
        self.interrupt = interrupt
        self.sim_config = sim_config or SimulatorConfig()

        self.registers = bytearray(0x80)
        for address, value in _RESET_VALUES.items():
            self.registers[address] = value

        self.fifo = bytearray()
        self.log: List[bytes] = []
        self.transmitted: List[bytes] = []
        self.rx_restarts = 0

        self._payload_ready = False
        self._packet_sent = False

    @property
    def mode(self) -> Mode:
        return Mode(self.registers[reg.REG_OPMODE] & 0x1C)

    @property
    def aes_enabled(self) -> bool:
        return bool(self.registers[reg.REG_PACKETCONFIG2] & reg.RF_PACKET2_AES_ON)

    @property
    def aes_key(self) -> bytes:
        return bytes(self.registers[reg.REG_AESKEY1:reg.REG_AESKEY1 + reg.AES_KEY_SIZE])

    @property
    def frequency(self) -> float:
        frf = (self.registers[reg.REG_FRFMSB] << 16) | (self.registers[reg.REG_FRFMID] << 8) \
            | self.registers[reg.REG_FRFLSB]
        return frf * reg.FSTEP

    def clear_log(self) -> None:
        self.log.clear()

    def writes_to(self, address: int) -> List[bytes]:
        """Values written to a register, one entry per write transfer."""
        return [t[1:] for t in self.log if t[0] == (address | reg.WRITE_FLAG)]

    async def transfer(self, data: bytes) -> bytes:
        data = bytes(data)
        self.log.append(data)
        # Real SPI transfers yield to the loop
        await asyncio.sleep(0)

        address = data[0] & reg.ADDRESS_MASK
        if data[0] & reg.WRITE_FLAG:
            self._write(address, data[1:])
            return bytes(len(data))
        return bytes(1) + self._read(address, len(data) - 1)

    def inject(self, frame: bytes) -> None:
        """
        Place a received frame in the FIFO and set PayloadReady.

        DIO0 fires when the chip is in RX with DIO0 mapped to PayloadReady.
        """
        self.fifo[:] = frame
        self._payload_ready = True
        dio0 = self.registers[reg.REG_DIOMAPPING1] & 0xC0
        if self.mode is Mode.RX and dio0 == reg.RF_DIOMAPPING1_DIO0_01:
            self.interrupt.fire()

    def _write(self, address: int, values: bytes) -> None:
        if address == reg.REG_FIFO:
            room = reg.FIFO_SIZE - len(self.fifo)
            self.fifo.extend(values[:room])
            return
        for offset, value in enumerate(values):
            self._write_reg((address + offset) & reg.ADDRESS_MASK, value)

    def _write_reg(self, address: int, value: int) -> None:
        if address == reg.REG_IRQFLAGS1:
            return
        if address == reg.REG_IRQFLAGS2:
            if value & reg.RF_IRQFLAGS2_FIFOOVERRUN:
                self._clear_fifo()
            return
        if address == reg.REG_PACKETCONFIG2 and value & reg.RF_PACKET2_RXRESTART:
            self.rx_restarts += 1
            self._clear_fifo()
            value &= ~reg.RF_PACKET2_RXRESTART
        self.registers[address] = value

        if address == reg.REG_OPMODE:
            if self.mode is not Mode.TX:
                self._packet_sent = False
            elif self.fifo:
                self._transmit()

    def _read(self, address: int, length: int) -> bytes:
        if address == reg.REG_FIFO:
            out = bytes(self.fifo[:length])
            del self.fifo[:length]
            if not self.fifo:
                self._payload_ready = False
            return out + bytes(length - len(out))
        return bytes(self._read_reg((address + i) & reg.ADDRESS_MASK) for i in range(length))

    def _read_reg(self, address: int) -> int:
        if address == reg.REG_IRQFLAGS1:
            return reg.RF_IRQFLAGS1_MODEREADY if self.sim_config.mode_ready else 0
        if address == reg.REG_IRQFLAGS2:
            flags = 0
            if self.fifo:
                flags |= reg.RF_IRQFLAGS2_FIFONOTEMPTY
            if self._payload_ready:
                flags |= reg.RF_IRQFLAGS2_PAYLOADREADY
            if self._packet_sent:
                flags |= reg.RF_IRQFLAGS2_PACKETSENT
            return flags
        if address == reg.REG_RSSIVALUE:
            return min(0xFF, max(0, int(-self.sim_config.rssi_dbm * 2)))
        if address == reg.REG_RSSICONFIG:
            return reg.RF_RSSI_DONE if self.sim_config.rssi_ready else 0
        return self.registers[address]

    def _clear_fifo(self) -> None:
        self.fifo.clear()
        self._payload_ready = False

    def _transmit(self) -> None:
        frame = bytes(self.fifo)
        self.fifo.clear()
        if self.aes_enabled:
            frame = encrypt_message(self.aes_key, frame)
        self.transmitted.append(frame)
        self._packet_sent = True
        logger.debug(f"Simulated TX: {frame.hex(' ')}")

        dio0 = self.registers[reg.REG_DIOMAPPING1] & 0xC0
        if self.sim_config.tx_interrupt and dio0 == reg.RF_DIOMAPPING1_DIO0_00:
            loop = asyncio.get_running_loop()
            loop.call_later(self.sim_config.tx_latency_ms / 1000.0, self.interrupt.fire)
