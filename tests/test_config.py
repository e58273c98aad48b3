"""Tests for configuration loading and value parsing."""

import pytest

from b003_flasher.config import FlasherConfig, load_config
from b003_flasher.core.parsing import ChipIdentity, format_identity_value, parse_int


class TestLoadConfig:
    """Test defaults and environment overrides."""

    def test_defaults(self):
        config = load_config({})
        assert config.driver == "simulated"
        assert config.image_url is None
        assert config.fetch_timeout is None
        assert config.vendor_id == 0x1209
        assert config.product_id == 0xB003
        assert config.flash_origin == 0x08000000
        assert config.device_label == "1209:b003"

    def test_environment_overrides(self):
        config = load_config({
            "B003_FLASHER_DRIVER": "mypkg.hid:Driver",
            "B003_FLASHER_IMAGE_URL": "https://example.com/fw.bin",
            "B003_FLASHER_FETCH_TIMEOUT": "7.5",
            "B003_FLASHER_VENDOR_ID": "0x1a86",
            "B003_FLASHER_PRODUCT_ID": "55e0h",
        })
        assert config.driver == "mypkg.hid:Driver"
        assert config.image_url == "https://example.com/fw.bin"
        assert config.fetch_timeout == 7.5
        assert config.vendor_id == 0x1A86
        assert config.product_id == 0x55E0

    def test_blank_values_ignored(self):
        config = load_config({"B003_FLASHER_DRIVER": "  ", "B003_FLASHER_FETCH_TIMEOUT": ""})
        assert config.driver == "simulated"
        assert config.fetch_timeout is None

    @pytest.mark.parametrize("raw", ["soon", "0", "-1"])
    def test_bad_timeout(self, raw):
        with pytest.raises(ValueError, match="B003_FLASHER_FETCH_TIMEOUT"):
            load_config({"B003_FLASHER_FETCH_TIMEOUT": raw})

    @pytest.mark.parametrize("raw", ["usb", "0x10000"])
    def test_bad_vendor_id(self, raw):
        with pytest.raises(ValueError, match="B003_FLASHER_VENDOR_ID"):
            load_config({"B003_FLASHER_VENDOR_ID": raw})

    def test_with_overrides_skips_none(self):
        config = FlasherConfig().with_overrides(driver=None, fetch_timeout=3.0)
        assert config.driver == "simulated"
        assert config.fetch_timeout == 3.0


class TestParseInt:
    """Test integer parsing from various input formats."""

    def test_none_and_empty(self):
        assert parse_int(None) is None
        assert parse_int("") is None
        assert parse_int("  ") is None

    def test_decimal(self):
        assert parse_int("4617") == 4617

    def test_hex_prefix(self):
        assert parse_int("0x1209") == 0x1209
        assert parse_int("0XB003") == 0xB003

    def test_hex_suffix(self):
        assert parse_int("b003h") == 0xB003

    def test_invalid_names_label(self):
        with pytest.raises(ValueError, match="vendor id"):
            parse_int("zz", label="vendor id")


class TestChipIdentity:
    """Test identity rendering."""

    def test_numbers_are_8_digit_hex(self):
        assert format_identity_value(0x300500) == "00300500"
        assert format_identity_value(0) == "00000000"
        assert format_identity_value(0xFFFFFFFF) == "ffffffff"

    def test_numbers_are_not_masked(self):
        assert format_identity_value(-1) == "-0000001"
        assert format_identity_value(0x1_0000_0000) == "100000000"

    def test_strings_verbatim(self):
        assert format_identity_value("CH32V003") == "CH32V003"

    def test_mapping_is_read_only(self):
        identity = ChipIdentity({"chip_id": 1})
        with pytest.raises(TypeError):
            identity["chip_id"] = 2
        assert dict(identity) == {"chip_id": 1}

    def test_driver_order_preserved(self):
        identity = ChipIdentity({"b": 2, "a": "x"})
        assert identity.formatted() == [("b", "00000002"), ("a", "x")]
        assert identity.to_dict() == {"b": "00000002", "a": "x"}
