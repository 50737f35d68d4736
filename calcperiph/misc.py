"""Small register blocks with no known function, plus DSR and battery registers."""

from __future__ import annotations

from .peripheral import HardwareId, Peripheral, Region

UNKNOWN_ADDRESSES = (
    0xF00A, 0xF018, 0xF033, 0xF034, 0xF041,  # all hardware
    0xF035, 0xF036, 0xF039, 0xF012, 0xF03D, 0xF224, 0xF028, 0xF310,  # ClassWiz families
    0xF037,  # ClassWiz II only
)

_UNKNOWN_COUNT = {
    HardwareId.ES_PLUS: 5,
    HardwareId.CLASSWIZ: 13,
    HardwareId.CLASSWIZ_II: 13,
}


class Miscellaneous(Peripheral):
    """Data segment register and assorted unknown registers."""

    def __init__(self, machine) -> None:
        super().__init__(machine)
        self.data = bytearray(len(UNKNOWN_ADDRESSES))
        self.data_f048 = bytearray(8)
        self.data_f220 = bytearray(4)
        self.data_f0d0 = 0
        self.data_f0d1 = 0
        self.data_f0d2 = 0

    def _read_dsr(self, offset: int) -> int:
        return self.machine.dsr & 0xFF

    def _write_dsr(self, offset: int, value: int) -> None:
        self.machine.dsr = value

    def _read_f0d1(self, offset: int) -> int:
        return self.data_f0d1

    def _write_f0d1(self, offset: int, value: int) -> None:
        if self.data_f0d0 == 3 and self.data_f0d2 == 0 and value == 5:
            self.data_f0d1 = 6
        else:
            self.data_f0d1 = value

    def _write_f0d0(self, offset: int, value: int) -> None:
        self.data_f0d0 = value

    def _write_f0d2(self, offset: int, value: int) -> None:
        self.data_f0d2 = value

    def initialise(self) -> None:
        try:
            count = _UNKNOWN_COUNT[self.machine.hardware_id]
        except KeyError:
            raise ValueError(f"unknown hardware id {self.machine.hardware_id!r}") from None

        self._map(Region(0xF000, 1, "Miscellaneous/DSR", reader=self._read_dsr, writer=self._write_dsr))
        for index, address in enumerate(UNKNOWN_ADDRESSES[:count]):
            self._map(Region(
                address, 1, f"Miscellaneous/Unknown/{address:X}*1",
                buffer=memoryview(self.data)[index:index + 1],
            ))
        self._map(Region(0xF048, 8, "Miscellaneous/Unknown/F048*8", buffer=self.data_f048))
        self._map(Region(0xF220, 4, "Miscellaneous/Unknown/F220*4", buffer=self.data_f220))

        if self.machine.hardware_id is HardwareId.CLASSWIZ_II:
            self._map(Region(0xF0D0, 1, "Miscellaneous/Battery/F0D0",
                             reader=lambda _: self.data_f0d0, writer=self._write_f0d0))
            self._map(Region(0xF0D2, 1, "Miscellaneous/Battery/F0D2",
                             reader=lambda _: self.data_f0d2, writer=self._write_f0d2))
            self._map(Region(0xF0D1, 1, "Miscellaneous/Battery/F0D1",
                             reader=self._read_f0d1, writer=self._write_f0d1))