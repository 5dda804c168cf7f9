"""
rfm69 Configuration Management

Handles loading and validation of configuration from TOML file.

Example /etc/rfm69/config.toml:

    log_level = "INFO"

    [radio]
    node_id = 2
    network_id = 100
    band = 868
    high_power = true
    power_level = 31

    [spi]
    bus = 0
    device = 1

    [gpio]
    interrupt_pin = 22
    reset_pin = 25
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .radio.base import Band, RadioConfig
from .radio.spi import BonnetPins

try:
    import toml
    HAS_TOML = True
except ImportError:
    HAS_TOML = False

logger = logging.getLogger(__name__)


# Default configuration path
DEFAULT_CONFIG_PATH = Path("/etc/rfm69/config.toml")


@dataclass
class RadioSettings:
    """Radio-specific configuration."""
    node_id: int = 1
    network_id: int = 1
    band: int = 433  # MHz
    high_power: bool = True
    power_level: int = 31  # 0-31


@dataclass
class SpiSettings:
    """SPI bus configuration."""
    bus: int = 0
    device: int = BonnetPins.SPI_DEVICE
    speed_hz: int = 4000000


@dataclass
class GpioSettings:
    """GPIO pin configuration (BCM numbering)."""
    interrupt_pin: int = BonnetPins.DIO0
    reset_pin: Optional[int] = BonnetPins.RESET


@dataclass
class Config:
    """
    Complete rfm69 configuration.
    """
    radio: RadioSettings = field(default_factory=RadioSettings)
    spi: SpiSettings = field(default_factory=SpiSettings)
    gpio: GpioSettings = field(default_factory=GpioSettings)

    # Path the configuration was loaded from
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG_PATH)

    # Logging
    log_level: str = "INFO"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """
        Load configuration from file.

        Args:
            config_path: Path to config file (default: /etc/rfm69/config.toml)

        Returns:
            Loaded configuration; defaults when the file does not exist
        """
        path = config_path or DEFAULT_CONFIG_PATH
        config = cls()
        config.config_path = path

        if not path.exists():
            return config

        if not HAS_TOML:
            logger.warning(f"toml not installed, ignoring {path}")
            return config

        data = toml.load(path)
        config._apply_dict(data)
        return config

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary data to config."""
        if "log_level" in data:
            self.log_level = str(data["log_level"]).upper()

        if "radio" in data:
            r = data["radio"]
            if "node_id" in r:
                self.radio.node_id = int(r["node_id"])
            if "network_id" in r:
                self.radio.network_id = int(r["network_id"])
            if "band" in r:
                self.radio.band = int(r["band"])
            if "high_power" in r:
                self.radio.high_power = bool(r["high_power"])
            if "power_level" in r:
                self.radio.power_level = int(r["power_level"])

        if "spi" in data:
            s = data["spi"]
            if "bus" in s:
                self.spi.bus = int(s["bus"])
            if "device" in s:
                self.spi.device = int(s["device"])
            if "speed_hz" in s:
                self.spi.speed_hz = int(s["speed_hz"])

        if "gpio" in data:
            g = data["gpio"]
            if "interrupt_pin" in g:
                self.gpio.interrupt_pin = int(g["interrupt_pin"])
            if "reset_pin" in g:
                self.gpio.reset_pin = None if g["reset_pin"] is None else int(g["reset_pin"])

    def validate(self) -> None:
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if not 0 <= self.radio.node_id <= 255:
            raise ValueError(f"Invalid node id: {self.radio.node_id}")

        if not 0 <= self.radio.network_id <= 255:
            raise ValueError(f"Invalid network id: {self.radio.network_id}")

        if self.radio.band not in {b.value for b in Band}:
            raise ValueError(f"Invalid band: {self.radio.band}")

        if not 0 <= self.radio.power_level <= 31:
            raise ValueError(f"Invalid power level: {self.radio.power_level}")

        if self.spi.speed_hz <= 0 or self.spi.speed_hz > 10000000:
            raise ValueError(f"Invalid SPI speed: {self.spi.speed_hz}")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {self.log_level}")

    def radio_config(self) -> RadioConfig:
        """Immutable driver configuration for these settings."""
        return RadioConfig(
            node_id=self.radio.node_id,
            network_id=self.radio.network_id,
            band=Band(self.radio.band),
            is_high_power=self.radio.high_power,
        )
