"""Periodic hardware timer that raises an interrupt every ``interval`` ticks."""

from __future__ import annotations

from .peripheral import HardwareId, InterruptSource, Peripheral, Region

EXT_TO_INT_FREQUENCY = 10000
TIMER_INTERRUPT_INDEX = 9

_KEYBOARD_READY_EMU = 0x088E00
_KEYBOARD_KI_EMU = 0x088E01
_KEYBOARD_KO_EMU = 0x088E02


class Timer(Peripheral):
    """Counter driven by a divided machine clock."""

    def __init__(self, machine) -> None:
        super().__init__(machine)
        self.interrupt_source = InterruptSource(TIMER_INTERRUPT_INDEX)
        self.real_hardware = True
        self.timer_skipped = False
        self.raise_required = False
        self.data_counter = 0
        self.data_interval = 0
        self.data_control = 0
        self.data_f024 = bytearray(1)
        self.ext_to_int_counter = 0
        self.ext_to_int_next = 0
        self.ext_to_int_int_done = 0
        self._raised = False

    @staticmethod
    def _byte_of(value: int, offset: int) -> int:
        return (value >> (offset * 8)) & 0xFF

    @staticmethod
    def _set_byte(value: int, offset: int, data: int) -> int:
        shift = offset * 8
        return ((value & ~(0xFF << shift)) | (data << shift)) & 0xFFFF

    def _write_interval(self, offset: int, value: int) -> None:
        self.data_interval = self._set_byte(self.data_interval, offset, value) or 1

    def _write_counter(self, offset: int, value: int) -> None:
        self.data_counter = 0

    def _write_control(self, offset: int, value: int) -> None:
        self.data_control = value & 0x01
        self.raise_required = False
        self.timer_skipped = False

    def initialise(self) -> None:
        self.real_hardware = bool(self.machine.model("real_hardware"))
        self.timer_skipped = False
        self._map(Region(
            0xF020, 2, "Timer/Interval",
            reader=lambda offset: self._byte_of(self.data_interval, offset),
            writer=self._write_interval,
        ))
        self._map(Region(
            0xF022, 2, "Timer/Counter",
            reader=lambda offset: self._byte_of(self.data_counter, offset),
            writer=self._write_counter,
        ))
        self._map(Region(
            0xF025, 1, "Timer/Control",
            reader=lambda offset: self.data_control & 0x01,
            writer=self._write_control,
        ))
        self._map(Region(0xF024, 1, "Timer/Unknown/F024*1", buffer=self.data_f024))

    def reset(self) -> None:
        self.ext_to_int_counter = 0
        self.ext_to_int_next = 0
        self.ext_to_int_int_done = 0
        self.divide_ticks()
        self.raise_required = False
        self.timer_skipped = False
        self.data_control = 0

    def tick(self) -> None:
        if self.ext_to_int_counter == self.ext_to_int_next:
            self.divide_ticks()
        self.ext_to_int_counter += 1
        if self.raise_required:
            self._raised = self.interrupt_source.try_raise()

    def tick_after_interrupts(self) -> None:
        if self.raise_required and self._raised:
            self.raise_required = False
            self.timer_skipped = False
            self._raised = False

    def _check_emulator_keyboard(self) -> None:
        bus = self.machine.bus
        ready = bus.read(_KEYBOARD_READY_EMU)
        if ready == 8:
            self.timer_skipped = True
            if bus.read(_KEYBOARD_KI_EMU) == 4 and bus.read(_KEYBOARD_KO_EMU) == 16:
                bus.write(_KEYBOARD_READY_EMU, 1)
            else:
                bus.write(_KEYBOARD_READY_EMU, 0)
        elif ready == 4:
            self.timer_skipped = True

    def divide_ticks(self) -> None:
        """Advance the divided clock by one step and update the counter."""
        if (self.machine.hardware_id is HardwareId.CLASSWIZ_II
                and not self.real_hardware and not self.machine.running):
            self._check_emulator_keyboard()

        self.ext_to_int_int_done += 1
        if self.ext_to_int_int_done == EXT_TO_INT_FREQUENCY:
            self.ext_to_int_int_done = 0
            self.ext_to_int_counter = 0
        self.ext_to_int_next = (
            self.machine.cycles_per_second * (self.ext_to_int_int_done + 1) // EXT_TO_INT_FREQUENCY
        )

        if self.data_control & 0x01:
            target = 1 if self.timer_skipped else self.data_interval
            if self.data_counter == target:
                self.data_counter = 0
                if self.interrupt_source.enabled:
                    self.raise_required = True
            self.data_counter = (self.data_counter + 1) & 0xFFFF