"""Tests for the command-line interface."""

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from b003_flasher.cli import app
from b003_flasher.core.safety import SafetyContext

runner = CliRunner()

URL = "https://example.com/fw.bin"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host B003_FLASHER_* variables out of the tests."""
    for name in ("DRIVER", "IMAGE_URL", "FETCH_TIMEOUT", "VENDOR_ID", "PRODUCT_ID"):
        monkeypatch.delenv(f"B003_FLASHER_{name}", raising=False)


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "app.bin"
    path.write_bytes(b"\x01\x02\x03\x04")
    return path


class TestFlashCommand:
    """Test `flash` with the simulated driver."""

    def test_local_file(self, image):
        result = runner.invoke(app, ["flash", str(image), "--simulate"])
        assert result.exit_code == 0, result.output
        assert "Chip Info acquired" in result.output
        assert "Done!" in result.output

    def test_json_output(self, image):
        result = runner.invoke(app, ["flash", str(image), "--simulate", "--json"])
        assert result.exit_code == 0, result.output
        assert '"ok": true' in result.output
        assert '"status": "Done!"' in result.output

    def test_json_output_lists_messages(self, tmp_path):
        result = runner.invoke(app, ["flash", str(tmp_path / "missing.bin"), "--simulate", "--json"])
        assert result.exit_code == 1
        assert '"messages"' in result.output
        assert '"code": "E_SOURCE_UNAVAILABLE"' in result.output

    def test_no_image(self):
        result = runner.invoke(app, ["flash", "--simulate"])
        assert result.exit_code == 2

    def test_file_and_url_conflict(self, image):
        result = runner.invoke(app, ["flash", str(image), "--url", URL, "--simulate"])
        assert result.exit_code == 2

    def test_bad_url_rejected(self):
        result = runner.invoke(app, ["flash", "--url", "https://example.com/fw.hex", "--simulate"])
        assert result.exit_code == 2

    def test_unknown_driver(self, image):
        result = runner.invoke(app, ["flash", str(image), "--driver", "nope"])
        assert result.exit_code == 2

    def test_driver_from_environment(self, image, monkeypatch):
        monkeypatch.setenv("B003_FLASHER_DRIVER", "b003_flasher.core.driver:SimulatedDriver")
        result = runner.invoke(app, ["flash", str(image)])
        assert result.exit_code == 0, result.output

    def test_missing_file_fails_session(self, tmp_path):
        result = runner.invoke(app, ["flash", str(tmp_path / "missing.bin"), "--simulate"])
        assert result.exit_code == 1
        assert "Image source unavailable!" in result.output


class TestFlashRemote:
    """Test `flash --url` and the acknowledgment flags."""

    def test_refused_without_acknowledgement(self):
        with patch("b003_flasher.core.image_source.requests.get") as get:
            result = runner.invoke(app, ["flash", "--url", URL, "--simulate"])

        assert result.exit_code == 1
        assert "External Binary Warning" in result.output
        get.assert_not_called()

    def test_yes_flag(self):
        with patch("b003_flasher.core.image_source.requests.get") as get:
            get.return_value = MagicMock(status_code=200, content=b"\xaa")
            result = runner.invoke(app, ["flash", "--url", URL, "--simulate", "--yes"])

        assert result.exit_code == 0, result.output
        get.assert_called_once_with(URL, timeout=None)

    def test_confirm_token(self):
        with patch("b003_flasher.core.image_source.requests.get") as get:
            get.return_value = MagicMock(status_code=200, content=b"\xaa")
            result = runner.invoke(app, ["flash", "--url", URL, "--simulate", "--confirm", "TRUST"])

        assert result.exit_code == 0, result.output

    def test_wrong_confirm_token(self):
        with patch("b003_flasher.core.image_source.requests.get") as get:
            result = runner.invoke(app, ["flash", "--url", URL, "--simulate", "--confirm", "OK"])

        assert result.exit_code == 1
        get.assert_not_called()

    def test_json_never_prompts(self):
        interactive = SafetyContext(interactive=True)
        with patch("b003_flasher.cli.create_cli_safety_context", return_value=interactive), \
                patch("b003_flasher.cli.typer.confirm") as confirm, \
                patch("b003_flasher.core.image_source.requests.get") as get:
            result = runner.invoke(app, ["flash", "--url", URL, "--simulate", "--json"])

        assert result.exit_code == 1
        assert interactive.interactive is False
        confirm.assert_not_called()
        get.assert_not_called()

    def test_json_with_yes_flag(self):
        with patch("b003_flasher.core.image_source.requests.get") as get:
            get.return_value = MagicMock(status_code=200, content=b"\xaa")
            result = runner.invoke(app, ["flash", "--url", URL, "--simulate", "--json", "--yes"])

        assert result.exit_code == 0, result.output
        assert '"ok": true' in result.output

    def test_fetch_404(self):
        with patch("b003_flasher.core.image_source.requests.get") as get:
            get.return_value = MagicMock(status_code=404)
            result = runner.invoke(app, ["flash", "--url", URL, "--simulate", "--yes", "--fetch-timeout", "4"])

        assert result.exit_code == 1
        assert "Failed to fetch external image!" in result.output
        get.assert_called_once_with(URL, timeout=4.0)

    def test_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("B003_FLASHER_IMAGE_URL", URL)
        with patch("b003_flasher.core.image_source.requests.get") as get:
            get.return_value = MagicMock(status_code=200, content=b"\xaa")
            result = runner.invoke(app, ["flash", "--simulate", "--yes"])

        assert result.exit_code == 0, result.output
        get.assert_called_once()


class TestOtherCommands:
    """Test the helper commands."""

    def test_check_url_accepted(self):
        result = runner.invoke(app, ["check-url", URL])
        assert result.exit_code == 0
        assert "Accepted" in result.output

    def test_check_url_rejected(self):
        result = runner.invoke(app, ["check-url", "ftp://example.com/fw.bin"])
        assert result.exit_code == 1
        assert "Rejected" in result.output

    def test_udev_rule(self):
        result = runner.invoke(app, ["udev-rule"])
        assert result.exit_code == 0
        assert "99-ch32v003.rules" in result.output

    def test_info(self):
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0
        assert "0x1209" in result.output
        assert "0xB003" in result.output

    def test_info_bad_config(self, monkeypatch):
        monkeypatch.setenv("B003_FLASHER_FETCH_TIMEOUT", "never")
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 2

    def test_list_devices_without_backend(self):
        with patch("b003_flasher.cli.hid_backend_available", return_value=False):
            result = runner.invoke(app, ["list-devices"])
        assert result.exit_code == 1

    def test_list_devices_none_found(self):
        with patch("b003_flasher.cli.hid_backend_available", return_value=True), \
                patch("b003_flasher.cli.list_bootloader_devices", return_value=[]):
            result = runner.invoke(app, ["list-devices"])
        assert result.exit_code == 0
        assert "No B003 bootloader detected" in result.output
