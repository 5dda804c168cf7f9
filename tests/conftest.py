import pytest

import rfm69.radio.rfm69 as driver
from rfm69.radio import InterruptLine, RadioConfig, Rfm69Radio, SimulatedRfm69, SimulatorConfig


class Bench:
    """A driver wired to a simulated chip through one interrupt line."""

    def __init__(self, config: RadioConfig = None, sim_config: SimulatorConfig = None):
        self.line = InterruptLine()
        self.chip = SimulatedRfm69(self.line, sim_config)
        self.radio = Rfm69Radio(self.chip, self.line, config)

    def opmode_writes(self):
        """Mode bits of every RegOpMode write, in order."""
        return [values[0] & 0x1C for values in self.chip.writes_to(0x01)]


@pytest.fixture(autouse=True)
def fast_timeouts(monkeypatch):
    # The handshake never succeeds on a healthy chip and carrier sense
    # runs to its budget outside RX; keep both short.
    monkeypatch.setattr(driver, "SYNC_HANDSHAKE_TIMEOUT_MS", 5)
    monkeypatch.setattr(driver, "CSMA_TIMEOUT_MS", 20)


@pytest.fixture
def make_bench():
    def factory(config: RadioConfig = None, sim_config: SimulatorConfig = None) -> Bench:
        return Bench(config, sim_config)
    return factory
