"""Key matrix scanning, ghosting and the vendor emulator's key interface."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Sequence

from .peripheral import HardwareId, InterruptSource, Peripheral, Region

KEYBOARD_INTERRUPT_INDEX = 5
POWER_CODE = 0xFF
POWER_INDEX = 63
BUTTON_COUNT = 64

PRESSED_COLOUR = (0, 0, 0, 127)
STUCK_COLOUR = (127, 0, 0, 127)

# Base of the emulator key interface block for each hardware family.
_EMU_OFFSET = {
    HardwareId.ES_PLUS: 0,
    HardwareId.CLASSWIZ: 0x40000,
    HardwareId.CLASSWIZ_II: 0x80000,
}


class ButtonType(enum.Enum):
    NONE = 0
    BUTTON = 1
    POWER = 2


@dataclass(eq=False)
class Button:
    """One key of the matrix and its place on the interface image."""

    type: ButtonType = ButtonType.NONE
    rect: tuple[int, int, int, int] = (0, 0, 0, 0)
    ko_bit: int = 0
    ki_bit: int = 0
    pressed: bool = False
    stuck: bool = False

    def hit(self, x: int, y: int) -> bool:
        rx, ry, rw, rh = self.rect
        return rx <= x < rx + rw and ry <= y < ry + rh


@dataclass(frozen=True)
class MouseButtonEvent:
    """A mouse click; ``button`` is ``"left"`` or ``"right"``."""

    button: str
    pressed: bool
    x: int
    y: int


@dataclass(frozen=True)
class KeyEvent:
    """A key press or release; ``key`` is the key name used in the button map."""

    key: str
    pressed: bool


def _is_number(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class Keyboard(Peripheral):
    """The calculator keyboard matrix."""

    def __init__(self, machine) -> None:
        super().__init__(machine)
        self.keyboard_out = 0
        self.keyboard_out_mask = 0
        self.keyboard_in = 0xFF
        self.input_filter = 0
        self.keyboard_ghost = [0] * 8
        self.real_hardware = True
        self.keyboard_ready_emu = 0
        self.keyboard_out_emu = 0
        self.keyboard_in_emu = 0
        self.keyboard_pd_emu = 0
        self.has_input = 0
        self.interrupt_source = InterruptSource(KEYBOARD_INTERRUPT_INDEX)
        self.buttons = [Button() for _ in range(BUTTON_COUNT)]
        # Maps a key name to an index into buttons.
        self.keyboard_map: dict[str, int] = {}
        self.p0 = False
        self.p1 = False
        self.p146 = False

    # -- registers -----------------------------------------------------------

    def _write_ko_mask(self, offset: int, value: int) -> None:
        shift = offset * 8
        mask = (self.keyboard_out_mask & ~(0xFF << shift)) | (value << shift)
        self.keyboard_out_mask = mask & 0x03FF
        if not offset:
            self.recalculate_ki()

    def _write_ko(self, offset: int, value: int) -> None:
        shift = offset * 8
        out = (self.keyboard_out & ~(0xFF << shift)) | (value << shift)
        self.keyboard_out = out & 0x03FF
        if not offset:
            self.recalculate_ki()

    def _write_input_filter(self, offset: int, value: int) -> None:
        self.input_filter = value

    def _write_ready_emu(self, offset: int, value: int) -> None:
        self.keyboard_ready_emu = value

    def _map_registers(self) -> None:
        # Regions without a writer or buffer ignore writes.
        self._map(Region(0xF040, 1, "Keyboard/KI",
                         reader=lambda _: self.keyboard_in))
        self._map(Region(0xF042, 1, "Keyboard/InputFilter",
                         reader=lambda _: self.input_filter, writer=self._write_input_filter))
        self._map(Region(0xF044, 2, "Keyboard/KOMask",
                         reader=lambda o: (self.keyboard_out_mask & 0x03FF) >> (o * 8),
                         writer=self._write_ko_mask))
        self._map(Region(0xF046, 2, "Keyboard/KO",
                         reader=lambda o: (self.keyboard_out & 0x03FF) >> (o * 8),
                         writer=self._write_ko))
        if self.real_hardware:
            return
        base = _EMU_OFFSET[self.machine.hardware_id]
        self._map(Region(base + 0x8E00, 1, "Keyboard/ReadyStatusEmulator",
                         reader=lambda _: self.keyboard_ready_emu, writer=self._write_ready_emu))
        self._map(Region(base + 0x8E01, 1, "Keyboard/KIEmulator",
                         reader=lambda _: self.keyboard_in_emu))
        self._map(Region(base + 0x8E02, 1, "Keyboard/KOEmulator",
                         reader=lambda _: self.keyboard_out_emu))
        self._map(Region(0xF050, 1, "Keyboard/PdValue",
                         reader=lambda _: self.keyboard_pd_emu))

    # -- button map ----------------------------------------------------------

    def _load_button(self, position: int, entry: Sequence[Any]) -> None:
        if not isinstance(entry, (list, tuple)) or len(entry) < 6:
            raise ValueError(f"button_map[{position}] is not a table of 6 entries")
        name = entry[5]
        if not isinstance(name, str):
            raise ValueError(f"button_map[{position}][6] is not a string")
        if "\0" in name:
            raise ValueError(f"Key name {name!r} contains null byte")
        for index in range(5):
            if not _is_number(entry[index]):
                raise ValueError(f"button_map[{position}][{index + 1}] is not a number")

        x, y, w, h, code = entry[:5]
        code &= 0xFF
        if code == POWER_CODE:
            button_ix = POWER_INDEX
        else:
            button_ix = ((code >> 1) & 0x38) | (code & 0x07)

        if name:
            if name in self.keyboard_map:
                raise ValueError(f"Key {name!r} is used twice")
            self.keyboard_map[name] = button_ix

        self.buttons[button_ix] = Button(
            type=ButtonType.POWER if code == POWER_CODE else ButtonType.BUTTON,
            rect=(x, y, w, h),
            ko_bit=(1 << ((code >> 4) & 0xF)) & 0xFF,
            ki_bit=(1 << (code & 0xF)) & 0xFF,
        )

    def initialise(self) -> None:
        self.require_frame = True
        # Without real hardware the vendor's emulator key interface is used.
        self.real_hardware = bool(self.machine.model("real_hardware"))
        if not self.real_hardware:
            self.keyboard_pd_emu = int(self.machine.model("pd_value")) & 0xFF
        self._map_registers()

        button_map = self.machine.model("button_map")
        if not isinstance(button_map, (list, tuple)):
            raise ValueError("key 'button_map' is not a table")
        self.buttons = [Button() for _ in range(BUTTON_COUNT)]
        self.keyboard_map = {}
        for position, entry in enumerate(button_map, start=1):
            self._load_button(position, entry)

    # -- lifecycle -----------------------------------------------------------

    def reset(self) -> None:
        self.p0 = False
        self.p1 = False
        self.p146 = False
        self.keyboard_out = 0
        self.keyboard_out_mask = 0
        if not self.real_hardware:
            self.keyboard_in_emu = 0
            self.keyboard_out_emu = 0
        self.recalculate_ghost()

    def tick(self) -> None:
        if self.has_input and self.interrupt_source.enabled:
            self.interrupt_source.try_raise()

    def frame(self) -> list[tuple[tuple[int, int, int, int], tuple[int, int, int, int]]]:
        """Return the rectangles to shade over pressed keys, with their colours."""
        self.require_frame = False
        return [
            (button.rect, STUCK_COLOUR if button.stuck else PRESSED_COLOUR)
            for button in self.buttons
            if button.type is not ButtonType.NONE and button.pressed
        ]

    def ui_event(self, event: Any) -> None:
        if isinstance(event, MouseButtonEvent):
            if event.button == "left":
                if event.pressed:
                    self.press_at(event.x, event.y, False)
                else:
                    self.release_all()
            elif event.button == "right" and event.pressed:
                self.press_at(event.x, event.y, True)
        elif isinstance(event, KeyEvent):
            index = self.keyboard_map.get(event.key)
            if index is None:
                return
            if event.pressed:
                self.press_button(self.buttons[index], False)
            else:
                self.release_all()

    # -- pressing ------------------------------------------------------------

    def press_button(self, button: Button, stick: bool) -> None:
        old_pressed = button.pressed
        if stick:
            button.stuck = not button.stuck
            button.pressed = button.stuck
        else:
            button.pressed = True
        self.require_frame = True

        if button.type is ButtonType.POWER and button.pressed and not old_pressed:
            self.machine.reset()
        if button.type is ButtonType.BUTTON and button.pressed != old_pressed:
            if self.real_hardware:
                self.recalculate_ghost()
            elif button.pressed:
                # The vendor's emulator reports only one key at a time.
                self.has_input = self.keyboard_in_emu = button.ki_bit
                self.keyboard_out_emu = button.ko_bit
            else:
                self.has_input = self.keyboard_in_emu = self.keyboard_out_emu = 0

    def press_at(self, x: int, y: int, stick: bool) -> None:
        button = next((b for b in self.buttons if b.hit(x, y)), None)
        if button is not None:
            self.press_button(button, stick)

    def release_all(self) -> None:
        had_effect = False
        for button in self.buttons:
            if not button.stuck and button.pressed:
                button.pressed = False
                if button.type is ButtonType.BUTTON:
                    had_effect = True
        if had_effect:
            self.require_frame = True
            if self.real_hardware:
                self.recalculate_ghost()
            else:
                self.has_input = self.keyboard_in_emu = self.keyboard_out_emu = 0

    # -- matrix --------------------------------------------------------------

    def _is_down(self, index: int) -> bool:
        button = self.buttons[index]
        return button.type is ButtonType.BUTTON and button.pressed

    def recalculate_ki(self) -> None:
        """Recompute the KI lines from the driven KO lines and pressed keys."""
        driven = self.keyboard_out & ~self.keyboard_out_mask
        ghosted = 0
        for column in range(7):
            if driven & (1 << column):
                ghosted |= self.keyboard_ghost[column]

        keyboard_in = 0xFF
        for button in self.buttons:
            if button.type is ButtonType.BUTTON and button.pressed and button.ko_bit & ghosted:
                keyboard_in &= ~button.ki_bit
        if driven & (1 << 7) and self.p0:
            keyboard_in &= 0x7F
        if driven & (1 << 8) and self.p1:
            keyboard_in &= 0x7F
        if driven & (1 << 9) and self.p146:
            keyboard_in &= 0x7F
        self.keyboard_in = keyboard_in & 0xFF

    def recalculate_ghost(self) -> None:
        """Work out which KO columns are shorted together by pressed keys."""
        self.has_input = 0
        for button in self.buttons:
            if button.type is ButtonType.BUTTON and button.pressed and button.ki_bit & self.input_filter:
                self.has_input |= button.ki_bit

        connections = [0] * 8
        for column in range(8):
            for row in range(8):
                if not self._is_down(column * 8 + row):
                    continue
                for other in range(8):
                    if self._is_down(other * 8 + row):
                        connections[column] |= 1 << other

        seen = [False] * 8
        for column in range(8):
            if seen[column]:
                continue
            seen[column] = True
            to_visit = 1 << column
            ghost_mask = 1 << column
            while to_visit:
                new_to_visit = 0
                for visit in range(8):
                    if not to_visit & (1 << visit):
                        continue
                    for sibling in range(8):
                        if connections[visit] & (1 << sibling) and not seen[sibling]:
                            new_to_visit |= 1 << sibling
                            ghost_mask |= 1 << sibling
                            seen[sibling] = True
                to_visit = new_to_visit
            for member in range(8):
                if ghost_mask & (1 << member):
                    self.keyboard_ghost[member] = ghost_mask

        self.recalculate_ki()