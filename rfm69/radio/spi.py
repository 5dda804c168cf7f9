"""
RFM69 Hardware Adapters

SPI transport and DIO0/RESET GPIO handling for an RFM69 module wired to a
Raspberry Pi.

Connections (typical RFM69 bonnet):
- SPI0: MOSI=GPIO10, MISO=GPIO9, SCLK=GPIO11, CS=CE1 (GPIO7)
- DIO0: GPIO22
- RESET: GPIO25 (active high)

Dependencies (hardware extra):
- spidev
- lgpio (Raspberry Pi 5) or RPi.GPIO
"""

import asyncio
import logging
from typing import Optional

from .base import RadioError
from .events import InterruptLine

# Raspberry Pi 5 uses lgpio instead of RPi.GPIO
try:
    import lgpio
    GPIO_LIB = "lgpio"
except ImportError:
    try:
        import RPi.GPIO as GPIO
        GPIO_LIB = "RPi.GPIO"
    except ImportError:
        GPIO_LIB = None

try:
    import spidev
    HAS_SPI = True
except ImportError:
    HAS_SPI = False

logger = logging.getLogger(__name__)


class BonnetPins:
    """GPIO pin assignments for the Adafruit RFM69 bonnet."""
    DIO0 = 22
    RESET = 25
    SPI_DEVICE = 1  # CE1


class SpidevTransport:
    """
    Full-duplex SPI transfers through /dev/spidevB.D.

    xfer2 blocks, so it runs in the loop's default executor.
    """

    def __init__(self, bus: int = 0, device: int = BonnetPins.SPI_DEVICE, speed_hz: int = 4000000):
        """
        Open the SPI device.

        Args:
            bus: SPI bus number
            device: Chip select number
            speed_hz: Clock rate (RFM69 allows up to 10 MHz)
        """
        if not HAS_SPI:
            raise RadioError("spidev not available - install spidev")
        self._bus = bus
        self._device = device
        self._spi = spidev.SpiDev()
        self._spi.open(bus, device)
        self._spi.max_speed_hz = speed_hz
        self._spi.mode = 0
        logger.info(f"Opened SPI {bus}.{device} at {speed_hz} Hz")

    async def transfer(self, data: bytes) -> bytes:
        loop = asyncio.get_running_loop()
        reply = await loop.run_in_executor(None, self._spi.xfer2, list(data))
        return bytes(reply)

    def close(self) -> None:
        if self._spi is not None:
            self._spi.close()
            self._spi = None
            logger.info(f"Closed SPI {self._bus}.{self._device}")

    def __repr__(self) -> str:
        return f"SpidevTransport({self._bus}, {self._device})"


class GpioInterrupt:
    """
    Forwards DIO0 rising edges to an InterruptLine and drives RESET.

    Edge callbacks arrive on the GPIO library's thread and are handed to
    the event loop with fire_threadsafe().
    """

    def __init__(
        self,
        line: InterruptLine,
        pin: int = BonnetPins.DIO0,
        reset_pin: Optional[int] = BonnetPins.RESET,
    ):
        if GPIO_LIB is None:
            raise RadioError("No GPIO library available - install lgpio or RPi.GPIO")
        self._line = line
        self._pin = pin
        self._reset_pin = reset_pin
        self._handle = None
        self._callback = None

        if GPIO_LIB == "lgpio":
            self._handle = lgpio.gpiochip_open(0)
            lgpio.gpio_claim_alert(self._handle, pin, lgpio.RISING_EDGE)
            self._callback = lgpio.callback(self._handle, pin, lgpio.RISING_EDGE, self._on_lgpio_edge)
            if reset_pin is not None:
                lgpio.gpio_claim_output(self._handle, reset_pin, 0)
        else:
            GPIO.setmode(GPIO.BCM)
            GPIO.setwarnings(False)
            GPIO.setup(pin, GPIO.IN, pull_up_down=GPIO.PUD_DOWN)
            GPIO.add_event_detect(pin, GPIO.RISING, callback=self._on_rpi_edge)
            if reset_pin is not None:
                GPIO.setup(reset_pin, GPIO.OUT, initial=GPIO.LOW)
        logger.info(f"Watching DIO0 on GPIO{pin} via {GPIO_LIB}")

    def _on_lgpio_edge(self, chip, gpio, level, tick) -> None:
        self._line.fire_threadsafe()

    def _on_rpi_edge(self, channel) -> None:
        self._line.fire_threadsafe()

    def _write(self, pin: int, value: int) -> None:
        if GPIO_LIB == "lgpio":
            lgpio.gpio_write(self._handle, pin, value)
        else:
            GPIO.output(pin, value)

    async def reset(self) -> None:
        """Pulse RESET high for 100 us, then let the chip settle for 5 ms."""
        if self._reset_pin is None:
            return
        self._write(self._reset_pin, 1)
        await asyncio.sleep(0.0001)
        self._write(self._reset_pin, 0)
        await asyncio.sleep(0.005)

    def close(self) -> None:
        if GPIO_LIB == "lgpio":
            if self._callback is not None:
                self._callback.cancel()
                self._callback = None
            if self._handle is not None:
                lgpio.gpiochip_close(self._handle)
                self._handle = None
        else:
            GPIO.remove_event_detect(self._pin)
            pins = [self._pin] if self._reset_pin is None else [self._pin, self._reset_pin]
            GPIO.cleanup(pins)
