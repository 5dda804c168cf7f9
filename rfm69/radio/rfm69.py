"""
RFM69 Radio Driver

Async driver for HopeRF RFM69W/HW/HCW FSK transceivers.

The driver owns two per-session tasks:
- the send loop, which services queued send requests one at a time
- the interrupt loop, which handles DIO0 edges one at a time

Both go through the same mode-change routine and register bus, so only one
bus transfer is ever outstanding.

Usage:
    line = InterruptLine()
    radio = Rfm69Radio(transport, line, RadioConfig(node_id=2, band=Band.MHZ_868))
    await radio.init()

    with radio.packets.subscribe() as packets:
        await radio.start_receive()
        packet = await packets.get()

    await radio.send(5, b"hello")
    radio.stop()
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional, Set

from .. import registers as reg
from .base import (
    AlreadyInitialized,
    BaseRadio,
    InvalidKeyLength,
    Mode,
    ModeReadyTimeout,
    NotInitialized,
    PacketTooBig,
    PollTimeout,
    RadioConfig,
    ReceivedPacket,
    RssiTimeout,
    Session,
    Transport,
    TxInterruptTimeout,
)
from .bus import RegisterBus, wait_for
from .events import Broadcast, InterruptLine, Subscription

logger = logging.getLogger(__name__)


# Timing budgets in milliseconds
MODE_READY_TIMEOUT_MS = 50
POLL_INTERVAL_MS = 2
SYNC_HANDSHAKE_TIMEOUT_MS = 50
CSMA_TIMEOUT_MS = 500
TX_INTERRUPT_TIMEOUT_MS = 50
RSSI_TIMEOUT_MS = 50

# Channel counts as busy at or above this level (dBm)
CSMA_LIMIT_DBM = -90

# Header bytes read from the FIFO: length, target, sender, control
RX_HEADER_SIZE = 4

_STOP = object()


@dataclass
class SendRequest:
    """Queued outbound packet and the future its sender awaits."""
    to: int
    payload: bytes
    future: asyncio.Future


class Rfm69Radio(BaseRadio):
    """
    Driver for an RFM69 transceiver.

    Args:
        transport: Full-duplex SPI transfer capability
        interrupt: DIO0 edge stream
        config: Radio configuration (defaults: node 1, network 1, 433 MHz, HW)
        name: Radio instance name
    """

    def __init__(
        self,
        transport: Transport,
        interrupt: InterruptLine,
        config: Optional[RadioConfig] = None,
        name: str = "rfm69",
    ):
        super().__init__(name)
        self._config = config or RadioConfig()
        self._bus = RegisterBus(transport)
        self._interrupt = interrupt
        self._mode: Optional[Mode] = None
        self._power_level = 31

        # Received packets, fanned out to every subscriber
        self.packets: Broadcast[ReceivedPacket] = Broadcast(f"{name}-packets")

        self._send_queue: Optional[asyncio.Queue] = None
        self._irq_subscription: Optional[Subscription[None]] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def config(self) -> RadioConfig:
        return self._config

    @property
    def mode(self) -> Optional[Mode]:
        """Last confirmed operating mode (None until the first change)."""
        return self._mode

    @property
    def power_level(self) -> int:
        """Power level as last written (halved on high power hardware)."""
        return self._power_level

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def init(self) -> None:
        if self._session is Session.RUNNING:
            raise AlreadyInitialized("already initialized; call stop first!")
        self._session = Session.RUNNING

        cfg = self._config
        logger.info(
            f"Initializing {self.name}: node {cfg.node_id}, network {cfg.network_id}, "
            f"{cfg.band.value} MHz, high power {cfg.is_high_power}"
        )

        self._send_queue = asyncio.Queue()
        self._spawn(self._send_loop(self._send_queue), "send")

        await self._sync_handshake(0xAA)
        await self._sync_handshake(0x55)

        for address, value in reg.init_table(cfg):
            await self._bus.write_reg(address, value)

        # Encryption state survives a reset; always start with it off
        await self.encrypt()

        await self._set_high_power()
        await self._set_mode(Mode.STANDBY)

        self._irq_subscription = self._interrupt.subscribe()
        self._spawn(self._interrupt_loop(self._irq_subscription), "irq")
        logger.info(f"{self.name} ready")

    def stop(self) -> None:
        self._require_session()
        self._session = Session.UNINITIALIZED

        queue = self._send_queue
        self._send_queue = None
        if queue is not None:
            while not queue.empty():
                request = queue.get_nowait()
                if not request.future.done():
                    request.future.set_exception(NotInitialized("radio stopped before send started"))
            queue.put_nowait(_STOP)

        if self._irq_subscription is not None:
            self._irq_subscription.close()
            self._irq_subscription = None

        logger.info(f"{self.name} stopped")

    async def __aenter__(self) -> "Rfm69Radio":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._session is Session.RUNNING:
            self.stop()
        return False

    def _spawn(self, coro, label: str) -> None:
        task = asyncio.create_task(coro, name=f"{self.name}-{label}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _sync_handshake(self, value: int) -> None:
        """Write a sync value and poll the read-back; a timeout is not an error."""
        async def changed() -> bool:
            await self._bus.write_reg(reg.REG_SYNCVALUE1, value)
            return await self._bus.read_reg(reg.REG_SYNCVALUE1) != value

        try:
            await wait_for(changed, SYNC_HANDSHAKE_TIMEOUT_MS, POLL_INTERVAL_MS)
        except PollTimeout:
            logger.debug(f"Sync handshake 0x{value:02X} timed out, continuing")

    # ------------------------------------------------------------------
    # Mode and power
    # ------------------------------------------------------------------

    async def _set_mode(self, mode: Mode) -> None:
        """
        Change the operating mode and wait for ModeReady.

        Raises:
            ModeReadyTimeout: If ModeReady never set; mode is left unchanged
        """
        if mode == self._mode:
            return

        await self._bus.update_reg(reg.REG_OPMODE, reg.RF_OPMODE_MODE_MASK, mode.value)
        if self._config.is_high_power and mode in (Mode.TX, Mode.RX):
            await self._set_high_power_regs(mode is Mode.TX)

        try:
            await wait_for(self._mode_ready, MODE_READY_TIMEOUT_MS, POLL_INTERVAL_MS)
        except PollTimeout:
            logger.error(f"{self.name}: mode {mode.name} not ready after {MODE_READY_TIMEOUT_MS} ms")
            raise ModeReadyTimeout(f"radio wait for mode ready timeout ({mode.name})") from None
        self._mode = mode

    async def _set_high_power_regs(self, boost: bool) -> None:
        await self._bus.write_reg(reg.REG_TESTPA1, reg.TESTPA1_BOOST if boost else reg.TESTPA1_NORMAL)
        await self._bus.write_reg(reg.REG_TESTPA2, reg.TESTPA2_BOOST if boost else reg.TESTPA2_NORMAL)

    async def _set_high_power(self) -> None:
        """Select the PA stages for the board variant."""
        if self._config.is_high_power:
            await self._bus.write_reg(reg.REG_OCP, reg.RF_OCP_OFF)
            # PA1 + PA2, keep output power bits
            await self._bus.update_reg(
                reg.REG_PALEVEL, reg.RF_PALEVEL_OUTPUTPOWER_MASK,
                reg.RF_PALEVEL_PA1_ON | reg.RF_PALEVEL_PA2_ON,
            )
        else:
            await self._bus.write_reg(reg.REG_OCP, reg.RF_OCP_ON)
            await self._bus.write_reg(
                reg.REG_PALEVEL,
                reg.RF_PALEVEL_PA0_ON | reg.RF_PALEVEL_PA1_OFF | reg.RF_PALEVEL_PA2_OFF | self._power_level,
            )

    async def set_power_level(self, level: int) -> None:
        """
        Set output power.

        Args:
            level: 0 (lowest) to 31 (highest); out of range values are clamped.
                High power boards only have 16 steps, so the level is halved.
        """
        # Half rounds up
        level = min(31, max(0, math.floor(level + 0.5)))
        if self._config.is_high_power:
            level //= 2
        self._power_level = level
        await self._bus.update_reg(reg.REG_PALEVEL, 0xE0, level)

    async def get_frequency(self) -> float:
        """Carrier frequency in Hz."""
        msb = await self._bus.read_reg(reg.REG_FRFMSB)
        mid = await self._bus.read_reg(reg.REG_FRFMID)
        lsb = await self._bus.read_reg(reg.REG_FRFLSB)
        return reg.FSTEP * ((msb << 16) | (mid << 8) | lsb)

    async def set_frequency(self, freq_hz: float) -> None:
        """
        Set the carrier frequency in Hz (resolution FSTEP, ~61 Hz).

        The FRF registers must not be written while transmitting, and the
        synthesizer only relocks in RX after passing through SYNTH.
        """
        self._require_session()
        frf = int(freq_hz / reg.FSTEP)
        if not 0 <= frf <= 0xFFFFFF:
            raise ValueError(f"Invalid frequency: {freq_hz}")

        old_mode = self._mode
        if old_mode is Mode.TX:
            await self._set_mode(Mode.RX)

        await self._bus.write_reg(reg.REG_FRFMSB, (frf >> 16) & 0xFF)
        await self._bus.write_reg(reg.REG_FRFMID, (frf >> 8) & 0xFF)
        await self._bus.write_reg(reg.REG_FRFLSB, frf & 0xFF)

        if old_mode is Mode.RX:
            await self._set_mode(Mode.SYNTH)
        if old_mode is not None:
            await self._set_mode(old_mode)
        logger.info(f"{self.name}: frequency set to {frf * reg.FSTEP:.0f} Hz")

    async def encrypt(self, key: Optional[bytes] = None) -> None:
        """
        Enable AES-128 with key, or disable encryption when key is None.

        Raises:
            InvalidKeyLength: If key is not 16 bytes
        """
        self._require_session()
        if key is not None and len(key) != reg.AES_KEY_SIZE:
            raise InvalidKeyLength(len(key))

        await self._set_mode(Mode.STANDBY)
        if key is not None:
            await self._bus.write_burst(reg.REG_AESKEY1, bytes(key))
        await self._bus.update_reg(
            reg.REG_PACKETCONFIG2, 0xFE,
            reg.RF_PACKET2_AES_ON if key is not None else reg.RF_PACKET2_AES_OFF,
        )

    async def sleep(self) -> None:
        self._require_session()
        await self._set_mode(Mode.SLEEP)

    async def read_rssi(self, force_trigger: bool = False) -> float:
        """
        Signal strength in dBm.

        A trigger is not needed while DAGC runs continuously in RX.

        Raises:
            RssiTimeout: If a forced measurement does not complete
        """
        if force_trigger:
            await self._bus.write_reg(reg.REG_RSSICONFIG, reg.RF_RSSI_START)
            try:
                await wait_for(self._rssi_done, RSSI_TIMEOUT_MS, POLL_INTERVAL_MS)
            except PollTimeout:
                raise RssiTimeout("radio timeout while waiting for RSSI ready") from None
        return -(await self._bus.read_reg(reg.REG_RSSIVALUE)) / 2

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(self, to: int, payload: bytes) -> None:
        """
        Queue a packet for node address `to` and wait until it is on the air.

        Raises:
            ValueError: If `to` is not a byte
            TypeError: If payload is not bytes-like
            NotInitialized: If no session is running (or it stopped first)
            PacketTooBig: If payload is longer than 62 bytes
            TxInterruptTimeout: If PacketSent was not signalled in time
        """
        self._require_session()
        if not 0 <= to <= 0xFF:
            raise ValueError(f"Invalid node address: {to}")
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(f"payload must be bytes-like, not {type(payload).__name__}")
        future = asyncio.get_running_loop().create_future()
        self._send_queue.put_nowait(SendRequest(to, bytes(payload), future))
        await future

    async def _send_loop(self, queue: asyncio.Queue) -> None:
        while True:
            request = await queue.get()
            if request is _STOP:
                return
            if request.future.cancelled():
                continue
            try:
                await self._send_internal(request.to, request.payload)
            except Exception as e:
                self._tx_errors += 1
                logger.warning(f"{self.name}: send to {request.to} failed: {e}")
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                self._packets_sent += 1
                if not request.future.done():
                    request.future.set_result(None)

    async def _send_internal(self, to: int, payload: bytes) -> None:
        if len(payload) > reg.MAX_PAYLOAD:
            raise PacketTooBig(len(payload))

        await self._rx_restart()

        try:
            await wait_for(self._can_send, CSMA_TIMEOUT_MS, POLL_INTERVAL_MS)
        except PollTimeout:
            logger.debug(f"{self.name}: channel not clear after {CSMA_TIMEOUT_MS} ms, sending anyway")

        # No reception while the FIFO is filled
        await self._set_mode(Mode.STANDBY)
        await self._bus.write_reg(reg.REG_DIOMAPPING1, reg.RF_DIOMAPPING1_DIO0_00)
        await self._bus.write_burst(
            reg.REG_FIFO, bytes([len(payload) + 2, to, self._config.node_id]) + payload
        )

        loop = asyncio.get_running_loop()
        with self._interrupt.subscribe() as tx_done:
            deadline = loop.time() + TX_INTERRUPT_TIMEOUT_MS / 1000.0
            # TX starts by itself once the FIFO is not empty
            await self._set_mode(Mode.TX)
            try:
                await asyncio.wait_for(tx_done.get(), max(deadline - loop.time(), 0))
            except asyncio.TimeoutError:
                raise TxInterruptTimeout("timeout while waiting for tx interrupt") from None

        await self._set_mode(Mode.STANDBY)
        logger.debug(f"{self.name}: sent {len(payload)} bytes to {to}")

    async def _can_send(self) -> bool:
        """Channel is clear: in RX and quieter than CSMA_LIMIT_DBM. Leaves RX when clear."""
        if self._mode is Mode.RX and await self.read_rssi() < CSMA_LIMIT_DBM:
            await self._set_mode(Mode.STANDBY)
            return True
        return False

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    async def start_receive(self) -> None:
        """Enter RX with DIO0 signalling PayloadReady."""
        self._require_session()
        await self._receive_begin()

    async def _receive_begin(self) -> None:
        if await self._payload_ready():
            await self._rx_restart()
        await self._bus.write_reg(reg.REG_DIOMAPPING1, reg.RF_DIOMAPPING1_DIO0_01)
        await self._set_mode(Mode.RX)

    async def _interrupt_loop(self, subscription: Subscription[None]) -> None:
        async for _ in subscription:
            # Edges queued before stop() are dropped
            if subscription.closed:
                break
            try:
                await self._handle_interrupt()
            except Exception as e:
                self._rx_errors += 1
                logger.error(f"{self.name}: interrupt handling failed: {e}")

    async def _handle_interrupt(self) -> None:
        if self._mode is not Mode.RX or not await self._payload_ready():
            return

        await self._set_mode(Mode.STANDBY)

        length, target, sender, _ctl = await self._bus.read_burst(reg.REG_FIFO, RX_HEADER_SIZE)
        length = min(length, reg.FIFO_SIZE)
        if length < 3:
            logger.debug(f"{self.name}: short frame (length {length}), restarting receiver")
            await self._receive_begin()

        data_len = length - 2
        data = await self._bus.read_burst(reg.REG_FIFO, data_len) if data_len > 0 else b""
        await self._set_mode(Mode.RX)

        if length < 3:
            self._rx_errors += 1
            return

        rssi = await self.read_rssi()
        self._packets_received += 1
        logger.debug(f"{self.name}: {len(data)} bytes from {sender} at {rssi} dBm")
        self.packets.publish(ReceivedPacket(data=data, sender=sender, rssi=rssi, target=target))

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    async def _rx_restart(self) -> None:
        # Avoids RX deadlocks
        await self._bus.update_reg(reg.REG_PACKETCONFIG2, 0xFB, reg.RF_PACKET2_RXRESTART)

    async def _payload_ready(self) -> bool:
        return await self._bus.has_flag(reg.REG_IRQFLAGS2, reg.RF_IRQFLAGS2_PAYLOADREADY)

    async def _mode_ready(self) -> bool:
        return await self._bus.has_flag(reg.REG_IRQFLAGS1, reg.RF_IRQFLAGS1_MODEREADY)

    async def _rssi_done(self) -> bool:
        return await self._bus.has_flag(reg.REG_RSSICONFIG, reg.RF_RSSI_DONE)
