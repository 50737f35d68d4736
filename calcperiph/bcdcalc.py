"""Hardware BCD arithmetic unit operating on four 12-byte registers."""

from __future__ import annotations

from .peripheral import Peripheral, Region

REGISTER_SIZE = 12
REGISTER_BASES = (0xF480, 0xF4A0, 0xF4C0, 0xF4E0)

# Bytes moved by a byte-wise shift for each value of the second type field.
_BYTE_SHIFTS = {1: 1, 2: 2, 3: 4}


def calc_addr(base: int, offset: int) -> int:
    """Bus address of byte ``offset`` of register ``base``."""
    return (((base + 0x7A4) << 5) + offset) & 0xFFFF


def _digit(value: int, shift: int) -> int:
    return (value >> shift) & 0x0F


def bcd_calculate(carry: int, val1: int, val2: int, subtract: bool) -> int:
    """Add or subtract two 4-digit BCD words.

    Returns the 16-bit BCD result with the carry (or borrow) out in bit 16.
    """
    if subtract:
        carry ^= 0x01
    carry &= 0x01
    result = 0
    for shift in (0, 4, 8, 12):
        a = _digit(val1, shift)
        b = _digit(val2, shift)
        if subtract:
            b = (0xFFFFFFF9 - b) & 0x0F
        total = a + b + carry
        carry = 0
        if total >= 0x0A:
            total -= 0x0A
            carry = 1
        result |= (total & 0x0F) << shift
    if subtract:
        carry ^= 0x01
    return (carry << 16) + result


class BCDCalc(Peripheral):
    """BCD coprocessor controlled through registers at 0xF400."""

    def __init__(self, machine) -> None:
        super().__init__(machine)
        self.data_param1 = bytearray(REGISTER_SIZE)
        self.data_param2 = bytearray(REGISTER_SIZE)
        self.data_temp1 = bytearray(REGISTER_SIZE)
        self.data_temp2 = bytearray(REGISTER_SIZE)

        self.data_f400 = 0xFF
        self.data_f402 = 0
        self.data_f404 = 0
        self.data_f405 = 0
        self.data_f410 = 0
        self.data_f414 = 0
        self.data_f415 = 0

        self.f400_write = False
        self.f402_write = False
        self.f404_write = False
        self.f405_write = False

        self.data_operator = 0
        self.data_type_1 = 0
        self.data_type_2 = 0
        self.param1 = 0
        self.param2 = 0
        self.param3 = 0
        self.param4 = 0
        self.data_f404_copy = 0
        self.data_mode = 0
        self.data_repeat_flag = 0
        self.data_a = 0
        self.data_b = 0
        self.data_c = 0
        self.data_d = 0
        self.data_f402_copy = 0

    # -- register callbacks -------------------------------------------------

    def _write_control(self, offset: int, value: int) -> None:
        self.data_f400 = value
        self.f400_write = True

    def _write_f402(self, offset: int, value: int) -> None:
        self.data_f402 = value
        self.f402_write = True

    def _byte_register(self, address: int, name: str, attribute: str) -> Region:
        def write(offset: int, value: int) -> None:
            setattr(self, attribute, value)

        return Region(address, 1, name, reader=lambda _: getattr(self, attribute), writer=write)

    def initialise(self) -> None:
        self.f400_write = False
        self.f402_write = False
        self.f404_write = False
        self.f405_write = False

        self._map(Region(0xF400, 1, "BCDCalc/control",
                         reader=lambda _: self.data_f400, writer=self._write_control))
        self._map(Region(0xF480, REGISTER_SIZE, "BCDCalc/param1", buffer=self.data_param1))
        self._map(Region(0xF4A0, REGISTER_SIZE, "BCDCalc/param2", buffer=self.data_param2))
        self._map(Region(0xF4C0, REGISTER_SIZE, "BCDCalc/temp1", buffer=self.data_temp1))
        self._map(Region(0xF4E0, REGISTER_SIZE, "BCDCalc/temp2", buffer=self.data_temp2))
        self._map(self._byte_register(0xF410, "BCDCalc/F410", "data_f410"))
        self._map(self._byte_register(0xF414, "BCDCalc/F414", "data_f414"))
        self._map(self._byte_register(0xF415, "BCDCalc/F415", "data_f415"))
        self._map(Region(0xF402, 1, "BCDCalc/F402",
                         reader=lambda _: self.data_f402, writer=self._write_f402))

    # -- bus helpers --------------------------------------------------------

    def _read(self, register: int, offset: int) -> int:
        return self.machine.bus.read(calc_addr(register, offset))

    def _write(self, register: int, offset: int, value: int) -> None:
        self.machine.bus.write(calc_addr(register, offset), value & 0xFF)

    def _read_word(self, register: int, offset: int) -> int:
        address = calc_addr(register, offset)
        bus = self.machine.bus
        return bus.read(address + 1) * 0x100 + bus.read(address)

    def _write_word(self, register: int, offset: int, value: int) -> None:
        address = calc_addr(register, offset)
        bus = self.machine.bus
        bus.write(address, value & 0xFF)
        bus.write(address + 1, (value >> 8) & 0xFF)

    # -- operation ----------------------------------------------------------

    def generate_params(self) -> None:
        """Decode the operator and register selectors from the control byte."""
        self.data_operator = (self.data_f400 >> 4) & 0x0F
        self.data_type_2 = (self.data_f400 >> 2) & 0x03
        self.data_type_1 = self.data_f400 & 0x03
        if self.data_operator == 0:
            self.param1 = 0
            self.param2 = 1
        else:
            self.param1 = 1

    def f405_control(self) -> None:
        any_set = (self.data_a | self.data_b | self.data_c | self.data_d) != 0
        if not (self.data_mode == 0xFF and self.param1 == 0):
            if any_set and self.param1 == 0:
                if (self.data_a | self.data_b | self.data_c) != 0:
                    self.param1 = 1
                    if (self.data_operator | self.data_type_1 | self.data_type_2) == 0:
                        self.param1 = 0
                self.param4 = 0
        if any_set:
            self.data_f405 = (self.data_f405 & 0x7F) | 0x80
        else:
            self.data_f405 &= 0x7F

    def shift_left(self, fill: int) -> None:
        """Shift the first selected register towards its high end.

        With ``fill`` set, the vacated low end is taken from the top of the
        preceding register; otherwise it is cleared.
        """
        t2 = self.data_type_2
        if t2 > 3:
            return
        t1 = self.data_type_1
        source = (t1 + 3) & 0x03
        if t2 == 0:
            for offset in range(REGISTER_SIZE - 1, 0, -1):
                high = self._read(t1, offset)
                low = self._read(t1, offset - 1)
                self._write(t1, offset, (high << 4) | (low >> 4))
            incoming = self._read(source, REGISTER_SIZE - 1) if fill else 0
            self._write(t1, 0, (self._read(t1, 0) << 4) | (incoming >> 4))
            return
        count = _BYTE_SHIFTS[t2]
        for offset in range(REGISTER_SIZE - count - 1, -1, -1):
            self._write(t1, offset + count, self._read(t1, offset))
        for index in range(count):
            value = self._read(source, index + REGISTER_SIZE - count) if fill else 0
            self._write(t1, index, value)

    def shift_right(self, fill: int) -> None:
        """Shift the first selected register towards its low end.

        With ``fill`` set, the vacated high end is taken from the bottom of the
        following register; otherwise it is cleared.
        """
        t2 = self.data_type_2
        if t2 > 3:
            return
        t1 = self.data_type_1
        source = (t1 + 1) & 0x03
        if t2 == 0:
            for offset in range(REGISTER_SIZE - 1):
                low = self._read(t1, offset)
                high = self._read(t1, offset + 1)
                self._write(t1, offset, (high << 4) | (low >> 4))
            top = self._read(t1, REGISTER_SIZE - 1)
            incoming = self._read(source, 0) if fill else 0
            self._write(t1, REGISTER_SIZE - 1, (incoming << 4) | (top >> 4))
            return
        count = _BYTE_SHIFTS[t2]
        for offset in range(REGISTER_SIZE - count):
            self._write(t1, offset, self._read(t1, offset + count))
        for index in range(REGISTER_SIZE - count, REGISTER_SIZE):
            value = self._read(source, index - (REGISTER_SIZE - count)) if fill else 0
            self._write(t1, index, value)

    def _arithmetic(self) -> None:
        t1, t2 = self.data_type_1, self.data_type_2
        store = self.data_operator in (1, 2)
        subtract = self.data_operator == 2
        copy = self.data_f402_copy
        carry = 0
        zero = 1
        for i in range((copy + 1) // 2):
            offset = i * 4
            result = bcd_calculate(carry, self._read_word(t1, offset), self._read_word(t2, offset), subtract)
            carry = (result >> 16) & 1
            zero = 1 if (result & 0xFFFF) == 0 and zero else 0
            if store:
                self._write_word(t1, offset, result)
            offset += 2
            result = bcd_calculate(carry, self._read_word(t1, offset), self._read_word(t2, offset), subtract)
            last = i * 2 + 1 == copy
            if not last:
                carry = (result >> 16) & 1
                zero = 1 if (result & 0xFFFF) == 0 and zero else 0
            self.data_f410 = (((carry * 2) | zero) << 6) & 0xFF
            if store:
                self._write_word(t1, offset, 0 if last else result)

    def _clear_register(self) -> None:
        t1 = self.data_type_1
        for offset in range(1, REGISTER_SIZE):
            self._write(t1, offset, 0)
        self._write(t1, 0, 5 if self.data_type_2 == 3 else self.data_type_2)

    def _copy_register(self) -> None:
        for offset in range(REGISTER_SIZE):
            self._write(self.data_type_1, offset, self._read(self.data_type_2, offset))

    def _count_zero_digits(self) -> None:
        t1 = self.data_type_1
        limit = self.data_f402_copy * 2
        start = 0
        end = 0
        for offset in range(REGISTER_SIZE - 1, -1, -1):
            if offset < limit:
                value = self._read(t1, offset)
                if value & 0xF0:
                    break
                end += 1
                if value & 0x0F:
                    break
                end += 1
            else:
                end += 2
        for offset in range(REGISTER_SIZE):
            if offset < limit:
                value = self._read(t1, offset)
                if value & 0x0F:
                    break
                start += 1
                if value & 0xF0:
                    break
                start += 1
            else:
                end += 2
        self.data_f414 = start & 0xFF
        self.data_f415 = end & 0xFF

    def data_operate(self) -> None:
        """Run one step of the operation selected by the control byte."""
        if self.param1 == 1 and self.param4 == 0 and self.data_f402_copy != 0:
            self._arithmetic()
        if self.data_operator in (1, 2) and (self.param2 == 1 or self.param3 == 1):
            self.param4 = (self.param4 + 2) & 0xFF
            if self.param4 >= self.data_f402_copy:
                self.param1 = 0

        sign = 0 if self.param1 == 0 else self.data_operator & 0x0F
        sign = (sign - 8) & 0xFF
        if sign == 0:
            self.shift_left(0)
        elif sign == 1:
            self.shift_right(0)
        elif sign == 2:
            self._clear_register()
        elif sign == 3:
            self._copy_register()
        elif sign == 4:
            self.shift_left(1)
        elif sign == 5:
            self.shift_right(1)

        if (self.data_f400 & 0xF0) == 0 or (self.param3 == 1 and self.param2 != 1):
            self._count_zero_digits()

        if self.data_f400 != 0 and (self.data_f400 & 0x08) == 0:
            return
        self.param1 = 0
        self.data_f402_copy = 6

    def tick(self) -> None:
        if self.f402_write:
            if self.data_f402 == 0:
                self.data_f402 = 1
            if self.data_f402 > 6:
                self.data_f402 = 6
            self.f402_write = False
            return
        if self.f404_write:
            self.data_f404 &= 0x1F
            self.f404_write = False
            return
        if not (self.f400_write or self.f405_write):
            return

        self.data_mode = 0x3F
        self.data_a = self.data_b = self.data_c = self.data_d = 0
        self.data_f404_copy = 0
        self.data_operator = 0
        self.data_type_1 = 0
        self.data_type_2 = 0
        self.param1 = self.param2 = self.param3 = self.param4 = 0
        if self.data_f400 != 0xFF:
            self.generate_params()
            self.data_f400 = 0xFF
        self.data_f402_copy = self.data_f402
        if self.data_f405 & 0x7F:
            self.data_f404_copy = self.data_f404
            self.data_f405 = 0
            self.data_mode = 0xFF

        while True:
            self.data_repeat_flag = 0 if self.param1 == 0 and self.data_mode == 0x3F else 1
            self.f405_control()
            self.param3 = self.param2
            self.param2 = self.param1
            self.data_operate()
            if self.data_repeat_flag != 1:
                break
        self.f400_write = False
        self.f405_write = False

    def reset(self) -> None:
        self.f400_write = False
        self.f402_write = False
        self.f404_write = False
        self.f405_write = False
        self.data_f400 = 0xFF
        self.data_f402 = 0
        self.data_f402_copy = 0
        self.data_f404 = 0
        self.data_f405 = 0