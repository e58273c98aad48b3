"""
B003 Flasher - firmware upload utility for CH32 B003 USB bootloaders

Opens the bootloader, reads its chip info, writes the image and boots it.
"""

__version__ = "0.1.0"

from b003_flasher.core import Flasher, FlashSession, FlashState, flash

__all__ = [
    "Flasher",
    "FlashSession",
    "FlashState",
    "flash",
    "__version__",
]
