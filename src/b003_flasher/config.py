"""
Runtime configuration.

Defaults are overridden by ``B003_FLASHER_*`` environment variables, which
are in turn overridden by explicit CLI options / UI inputs.
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from b003_flasher.core.driver import FLASH_ORIGIN, PRODUCT_ID, SIMULATED_DRIVER, VENDOR_ID
from b003_flasher.core.parsing import parse_int

logger = logging.getLogger(__name__)

ENV_PREFIX = "B003_FLASHER_"
ENV_DRIVER = ENV_PREFIX + "DRIVER"
ENV_IMAGE_URL = ENV_PREFIX + "IMAGE_URL"
ENV_FETCH_TIMEOUT = ENV_PREFIX + "FETCH_TIMEOUT"
ENV_VENDOR_ID = ENV_PREFIX + "VENDOR_ID"
ENV_PRODUCT_ID = ENV_PREFIX + "PRODUCT_ID"


@dataclass(frozen=True)
class FlasherConfig:
    """
    Settings shared by CLI and UI.

    Attributes:
        driver: Driver spec for ``load_driver`` ("simulated" or "pkg.mod:Factory")
        image_url: External image URL (configuration channel for remote sources)
        fetch_timeout: HTTP timeout in seconds for remote images; None waits forever
        vendor_id: USB vendor id of the bootloader
        product_id: USB product id of the bootloader
        flash_origin: Address the image is written to
    """
    driver: str = SIMULATED_DRIVER
    image_url: Optional[str] = None
    fetch_timeout: Optional[float] = None
    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    flash_origin: int = FLASH_ORIGIN

    def with_overrides(self, **overrides) -> "FlasherConfig":
        """Copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)

    @property
    def device_label(self) -> str:
        return f"{self.vendor_id:04x}:{self.product_id:04x}"


def _parse_timeout(raw: str) -> Optional[float]:
    raw = raw.strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{ENV_FETCH_TIMEOUT} must be a number of seconds, got '{raw}'")
    if value <= 0:
        raise ValueError(f"{ENV_FETCH_TIMEOUT} must be positive, got '{raw}'")
    return value


def _parse_id(name: str, raw: str) -> Optional[int]:
    try:
        value = parse_int(raw, label=name)
    except ValueError as e:
        raise ValueError(f"{name}: {e}")
    if value is not None and not 0 <= value <= 0xFFFF:
        raise ValueError(f"{name} must be a 16-bit USB id, got '{raw}'")
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> FlasherConfig:
    """
    Build the configuration from defaults and environment variables.

    Raises:
        ValueError: If an environment variable holds an invalid value.
    """
    env = os.environ if environ is None else environ
    config = FlasherConfig()

    overrides = {
        "driver": env.get(ENV_DRIVER, "").strip() or None,
        "image_url": env.get(ENV_IMAGE_URL, "").strip() or None,
        "fetch_timeout": _parse_timeout(env.get(ENV_FETCH_TIMEOUT, "")),
        "vendor_id": _parse_id(ENV_VENDOR_ID, env.get(ENV_VENDOR_ID, "")),
        "product_id": _parse_id(ENV_PRODUCT_ID, env.get(ENV_PRODUCT_ID, "")),
    }
    config = config.with_overrides(**overrides)
    logger.debug("Loaded config: %s", config)
    return config
