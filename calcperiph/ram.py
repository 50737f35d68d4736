"""Battery-backed RAM, optionally persisted to an image file."""

from __future__ import annotations

import logging

from .peripheral import HardwareId, Peripheral, Region

logger = logging.getLogger(__name__)

EXTRA_RAM_SIZE = 0x100

# (base, size) of the main RAM window for each hardware family.
RAM_LAYOUT = {
    HardwareId.ES_PLUS: (0x8000, 0x0E00),
    HardwareId.CLASSWIZ: (0xD000, 0x2000),
    HardwareId.CLASSWIZ_II: (0x9000, 0x6000),
}

# Base of the extra 0x100-byte block present in the vendor's emulator.
EXTRA_RAM_BASE = {
    HardwareId.ES_PLUS: 0x9800,
    HardwareId.CLASSWIZ: 0x49800,
    HardwareId.CLASSWIZ_II: 0x89800,
}


class BatteryBackedRAM(Peripheral):
    """Main RAM; loaded from and saved to the file given as the ``ram`` argument."""

    def __init__(self, machine) -> None:
        super().__init__(machine)
        self.data = bytearray()
        self.ram_file_requested = False

    @property
    def ram_size(self) -> int:
        return len(self.data)

    def initialise(self) -> None:
        real_hardware = bool(self.machine.model("real_hardware"))
        base, size = RAM_LAYOUT[self.machine.hardware_id]
        self.data = bytearray(size if real_hardware else size + EXTRA_RAM_SIZE)

        argv = self.machine.argv
        self.ram_file_requested = "ram" in argv
        if self.ram_file_requested and "clean_ram" not in argv:
            self.load_image()

        view = memoryview(self.data)
        self._map(Region(base, size, "BatteryBackedRAM", buffer=view[:size]))
        if not real_hardware:
            self._map(Region(
                EXTRA_RAM_BASE[self.machine.hardware_id], EXTRA_RAM_SIZE,
                "BatteryBackedRAM/2", buffer=view[len(self.data) - EXTRA_RAM_SIZE:],
            ))

    def uninitialise(self) -> None:
        if self.ram_file_requested and "preserve_ram" not in self.machine.argv:
            self.save_image()

    def save_image(self) -> bool:
        """Write the RAM to the image file; returns whether it succeeded."""
        try:
            with open(self.machine.argv["ram"], "wb") as handle:
                handle.write(self.data)
        except OSError as exc:
            logger.info("[BatteryBackedRAM] cannot write image: %s", exc)
            return False
        return True

    def load_image(self) -> bool:
        """Fill the RAM from the image file; returns whether a full image was read."""
        try:
            with open(self.machine.argv["ram"], "rb") as handle:
                content = handle.read(len(self.data))
        except OSError as exc:
            logger.info("[BatteryBackedRAM] cannot read image: %s", exc)
            return False
        self.data[:len(content)] = content
        if len(content) < len(self.data):
            logger.info("[BatteryBackedRAM] image is shorter than RAM")
            return False
        return True