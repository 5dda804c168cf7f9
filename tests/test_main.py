import pytest

from rfm69.main import build_parser, main


@pytest.fixture
def simulate(tmp_path):
    """Common arguments: simulated radio, no configuration file."""
    return ["--simulate", "-c", str(tmp_path / "none.toml")]


def test_send(simulate, capsys):
    assert main(simulate + ["send", "5", "hello"]) == 0
    assert "Sent 5 bytes to node 5" in capsys.readouterr().out


def test_send_hex(simulate, capsys):
    assert main(simulate + ["send", "5", "01 02 03", "--hex"]) == 0
    assert "Sent 3 bytes to node 5" in capsys.readouterr().out


def test_send_oversized_payload_fails(simulate, capsys):
    assert main(simulate + ["send", "5", "x" * 63]) == 1
    assert "Error:" in capsys.readouterr().err


def test_send_bad_destination_fails(simulate, capsys):
    assert main(simulate + ["send", "256", "x"]) == 1
    assert "Invalid argument" in capsys.readouterr().err


def test_freq_show_and_set(simulate, capsys):
    assert main(simulate + ["freq"]) == 0
    assert "Frequency: 433" in capsys.readouterr().out

    assert main(simulate + ["freq", "868000000"]) == 0
    assert "Frequency: 868" in capsys.readouterr().out


def test_power(simulate, capsys):
    assert main(simulate + ["power", "20"]) == 0
    assert "Power level: 10" in capsys.readouterr().out


def test_listen_for_a_moment(simulate, capsys):
    assert main(simulate + ["listen", "--seconds", "0.05"]) == 0
    out = capsys.readouterr().out
    assert "Listening as node 1" in out
    assert "Received 0 packets" in out


def test_invalid_config_file(tmp_path, capsys):
    pytest.importorskip("toml")
    path = tmp_path / "bad.toml"
    path.write_text("[radio]\nnode_id = 999\n")

    assert main(["--simulate", "-c", str(path), "freq"]) == 1


def test_command_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
