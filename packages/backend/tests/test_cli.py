"""CLI tests — provision command against the fake backend."""

from click.testing import CliRunner

from fencecast.cli import main as cli_main
from fencecast.tile38.client import Tile38Client
from tests.fakes import FENCES_DIR


def test_provision_reports_declared_channels(monkeypatch, fake):
    monkeypatch.setattr(cli_main.settings, "fences_dir", str(FENCES_DIR))
    monkeypatch.setattr(Tile38Client, "from_url", classmethod(lambda cls, url: cls(fake)))

    result = CliRunner().invoke(cli_main.cli, ["provision"])

    assert result.exit_code == 0, result.output
    assert "declared place:hyatt-regency" in result.output
    assert "declared roamchan" in result.output
    assert fake.closed


def test_provision_fails_without_fixtures(monkeypatch, tmp_path):
    monkeypatch.setattr(cli_main.settings, "fences_dir", str(tmp_path))

    result = CliRunner().invoke(cli_main.cli, ["provision"])

    assert result.exit_code == 1
