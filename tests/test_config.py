from pathlib import Path

import pytest

from rfm69.config import Config
from rfm69.radio import Band, RadioConfig


def test_defaults():
    config = Config()
    config.validate()

    assert config.radio.node_id == 1
    assert config.radio.band == 433
    assert config.radio.high_power
    assert config.radio_config() == RadioConfig()


def test_missing_file_gives_defaults(tmp_path):
    path = tmp_path / "absent.toml"
    config = Config.load(path)

    assert config.config_path == path
    assert config.radio == Config().radio


def test_load_toml(tmp_path):
    pytest.importorskip("toml")
    path = tmp_path / "config.toml"
    path.write_text(
        'log_level = "debug"\n'
        "[radio]\n"
        "node_id = 9\n"
        "network_id = 77\n"
        "band = 868\n"
        "high_power = false\n"
        "power_level = 12\n"
        "[spi]\n"
        "device = 0\n"
        "[gpio]\n"
        "interrupt_pin = 24\n"
    )

    config = Config.load(path)
    config.validate()

    assert config.log_level == "DEBUG"
    assert (config.radio.node_id, config.radio.network_id, config.radio.power_level) == (9, 77, 12)
    assert config.spi.device == 0
    assert config.gpio.interrupt_pin == 24
    assert config.radio_config() == RadioConfig(
        node_id=9, network_id=77, band=Band.MHZ_868, is_high_power=False
    )


@pytest.mark.parametrize(
    "section, key, value",
    [
        ("radio", "node_id", 300),
        ("radio", "network_id", -1),
        ("radio", "band", 800),
        ("radio", "power_level", 32),
        ("spi", "speed_hz", 0),
    ],
)
def test_validate_rejects(section, key, value):
    config = Config()
    setattr(getattr(config, section), key, value)

    with pytest.raises(ValueError):
        config.validate()


def test_validate_rejects_log_level():
    config = Config()
    config._apply_dict({"log_level": "chatty"})

    with pytest.raises(ValueError):
        config.validate()


def test_default_path():
    assert Config().config_path == Path("/etc/rfm69/config.toml")
