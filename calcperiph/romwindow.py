"""Maps the ROM image into the address space."""

from __future__ import annotations

import logging

from .peripheral import BusError, HardwareId, Peripheral, Region

logger = logging.getLogger(__name__)

# (region base, size, ROM offset) for each hardware family.
ROM_LAYOUTS = {
    HardwareId.ES_PLUS: (
        (0x00000, 0x08000, 0x00000),
        (0x10000, 0x10000, 0x10000),
        (0x80000, 0x10000, 0x00000),
    ),
    HardwareId.CLASSWIZ: (
        (0x00000, 0x0D000, 0x00000),
        (0x10000, 0x10000, 0x10000),
        (0x20000, 0x10000, 0x20000),
        (0x30000, 0x10000, 0x30000),
        (0x50000, 0x10000, 0x00000),
    ),
    HardwareId.CLASSWIZ_II: (
        (0x00000, 0x09000, 0x00000),
        (0x10000, 0x10000, 0x10000),
        (0x20000, 0x10000, 0x20000),
        (0x30000, 0x10000, 0x30000),
        (0x40000, 0x10000, 0x40000),
        (0x50000, 0x10000, 0x50000),
        (0x70000, 0x10000, 0x70000),
        (0x80000, 0x08E00, 0x00000),
    ),
}


class ROMWindow(Peripheral):
    """Read-only views of the ROM; writes are ignored or, if strict, an error."""

    def _rom_region(self, base: int, size: int, rom_base: int, strict: bool) -> Region:
        rom = self.machine.rom
        if rom_base + size > len(rom):
            raise BusError(f"Invalid ROM region: base {rom_base:x}, size {size:x}")

        def write(offset: int, value: int) -> None:
            if strict:
                logger.info("ROM: attempt to write %02X to %06X", value, base + offset)
                self.machine.handle_memory_error()

        return Region(
            base, size, f"ROM/Segment{base >> 16}",
            writer=write,
            buffer=memoryview(rom)[rom_base:rom_base + size],
        )

    def initialise(self) -> None:
        strict = "strict_memory" in self.machine.argv
        for base, size, rom_base in ROM_LAYOUTS.get(self.machine.hardware_id, ()):
            self._map(self._rom_region(base, size, rom_base, strict))