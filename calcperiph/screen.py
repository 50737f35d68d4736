"""LCD controller: display buffer, contrast/mode registers and frame rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .peripheral import BusError, HardwareId, Machine, Peripheral, Region

Rect = tuple[int, int, int, int]

BUFFER_BASE = 0xF800
BUFFER1_BASE = 0x89000
RANGE_ADDRESS = 0xF030
MODE_ADDRESS = 0xF031
CONTRAST_ADDRESS = 0xF032


@dataclass(frozen=True)
class SpriteBitmap:
    """Where a status indicator's bit lives in the first buffer row."""

    name: str
    mask: int
    offset: int


@dataclass(frozen=True)
class SpriteInfo:
    """Source rectangle on the interface image and destination on the window."""

    src: Rect
    dest: Rect


@dataclass(frozen=True)
class DrawCommand:
    """One copy of a sprite with the ink colour and an alpha modulation."""

    src: Rect
    dest: Rect
    alpha: int
    colour: tuple[int, int, int]


@dataclass(frozen=True)
class _Layout:
    n_row: int  # excluding the status row
    row_size: int  # bytes
    offset: int  # bytes
    row_size_disp: int  # bytes shown on the display
    sprites: tuple[SpriteBitmap, ...]  # the pixel sprite comes first

    @property
    def buffer_size(self) -> int:
        return (self.n_row + 1) * self.row_size


def _bitmaps(*entries: tuple[str, int, int]) -> tuple[SpriteBitmap, ...]:
    return tuple(SpriteBitmap(name, mask, offset) for name, mask, offset in entries)


SCREEN_LAYOUTS = {
    HardwareId.CLASSWIZ_II: _Layout(63, 32, 32, 24, _bitmaps(
        ("rsd_pixel", 0, 0),
        ("rsd_s", 0x01, 0x01),
        ("rsd_math", 0x01, 0x03),
        ("rsd_d", 0x01, 0x04),
        ("rsd_r", 0x01, 0x05),
        ("rsd_g", 0x01, 0x06),
        ("rsd_fix", 0x01, 0x07),
        ("rsd_sci", 0x01, 0x08),
        ("rsd_e", 0x01, 0x0A),
        ("rsd_cmplx", 0x01, 0x0B),
        ("rsd_angle", 0x01, 0x0C),
        ("rsd_wdown", 0x01, 0x0D),
        ("rsd_verify", 0x01, 0x0E),
        ("rsd_left", 0x01, 0x10),
        ("rsd_down", 0x01, 0x11),
        ("rsd_up", 0x01, 0x12),
        ("rsd_right", 0x01, 0x13),
        ("rsd_pause", 0x01, 0x15),
        ("rsd_sun", 0x01, 0x16),
    )),
    HardwareId.CLASSWIZ: _Layout(63, 32, 32, 24, _bitmaps(
        ("rsd_pixel", 0, 0),
        ("rsd_s", 0x01, 0x00),
        ("rsd_a", 0x01, 0x01),
        ("rsd_m", 0x01, 0x02),
        ("rsd_sto", 0x01, 0x03),
        ("rsd_math", 0x01, 0x05),
        ("rsd_d", 0x01, 0x06),
        ("rsd_r", 0x01, 0x07),
        ("rsd_g", 0x01, 0x08),
        ("rsd_fix", 0x01, 0x09),
        ("rsd_sci", 0x01, 0x0A),
        ("rsd_e", 0x01, 0x0B),
        ("rsd_cmplx", 0x01, 0x0C),
        ("rsd_angle", 0x01, 0x0D),
        ("rsd_wdown", 0x01, 0x0F),
        ("rsd_left", 0x01, 0x10),
        ("rsd_down", 0x01, 0x11),
        ("rsd_up", 0x01, 0x12),
        ("rsd_right", 0x01, 0x13),
        ("rsd_pause", 0x01, 0x15),
        ("rsd_sun", 0x01, 0x16),
    )),
    HardwareId.ES_PLUS: _Layout(31, 16, 16, 12, _bitmaps(
        ("rsd_pixel", 0, 0),
        ("rsd_s", 0x10, 0x00),
        ("rsd_a", 0x04, 0x00),
        ("rsd_m", 0x10, 0x01),
        ("rsd_sto", 0x02, 0x01),
        ("rsd_rcl", 0x40, 0x02),
        ("rsd_stat", 0x40, 0x03),
        ("rsd_cmplx", 0x80, 0x04),
        ("rsd_mat", 0x40, 0x05),
        ("rsd_vct", 0x01, 0x05),
        ("rsd_d", 0x20, 0x07),
        ("rsd_r", 0x02, 0x07),
        ("rsd_g", 0x10, 0x08),
        ("rsd_fix", 0x01, 0x08),
        ("rsd_sci", 0x20, 0x09),
        ("rsd_math", 0x40, 0x0A),
        ("rsd_down", 0x08, 0x0A),
        ("rsd_up", 0x80, 0x0B),
        ("rsd_disp", 0x10, 0x0B),
    )),
}


def _sprite_info(name: str, value: Any) -> SpriteInfo:
    """Accept a SpriteInfo or ``(src_x, src_y, w, h, dest_x, dest_y)``."""
    if isinstance(value, SpriteInfo):
        return value
    if isinstance(value, (list, tuple)) and len(value) == 6 and all(isinstance(v, int) for v in value):
        sx, sy, w, h, dx, dy = value
        return SpriteInfo((sx, sy, w, h), (dx, dy, w, h))
    raise ValueError(f"model entry {name!r} is not a sprite description")


def _colour(value: Any) -> tuple[int, int, int]:
    if isinstance(value, (list, tuple)) and len(value) >= 3 and all(isinstance(v, int) for v in value[:3]):
        return (value[0] & 0xFF, value[1] & 0xFF, value[2] & 0xFF)
    raise ValueError("model entry 'ink_colour' is not a colour")


class Screen(Peripheral):
    """Dot-matrix LCD with a row of status indicators."""

    def __init__(self, machine: Machine) -> None:
        super().__init__(machine)
        layout = SCREEN_LAYOUTS.get(machine.hardware_id)
        if layout is None:
            raise ValueError(f"Unknown hardware id {machine.hardware_id!r}")
        self.layout = layout
        self.screen_buffer: Optional[bytearray] = None
        self.screen_buffer1: Optional[bytearray] = None
        self.screen_contrast = 0
        self.screen_mode = 0
        self.screen_range = 0
        self.sprite_info: list[SpriteInfo] = []
        self.ink_colour: tuple[int, int, int] = (0, 0, 0)

    @property
    def _dual_buffer(self) -> bool:
        return self.machine.hardware_id is HardwareId.CLASSWIZ_II

    def _buffer(self, attribute: str) -> bytearray:
        buffer = getattr(self, attribute)
        if buffer is None:
            raise BusError("screen buffer is not initialised")
        return buffer

    def _buffer_region(self, base: int, description: str, attribute: str) -> Region:
        layout = self.layout

        def read(offset: int) -> int:
            buffer = self._buffer(attribute)
            if offset % layout.row_size >= layout.row_size_disp:
                return 0
            return buffer[offset]

        def write(offset: int, value: int) -> None:
            if offset % layout.row_size >= layout.row_size_disp:
                return
            buffer = self._buffer(attribute)
            if buffer[offset] != value:
                self.require_frame = True
            buffer[offset] = value

        return Region(base, layout.buffer_size, description, reader=read, writer=write)

    def _register(self, address: int, description: str, attribute: str, mask: int) -> Region:
        def write(offset: int, value: int) -> None:
            new = value & mask
            if getattr(self, attribute) != new:
                self.require_frame = True
            setattr(self, attribute, new)

        return Region(address, 1, description,
                      reader=lambda _: getattr(self, attribute) & mask, writer=write)

    def initialise(self) -> None:
        self.sprite_info = [
            _sprite_info(bitmap.name, self.machine.model(bitmap.name))
            for bitmap in self.layout.sprites
        ]
        self.ink_colour = _colour(self.machine.model("ink_colour"))
        self.require_frame = True

        self.screen_buffer = bytearray(self.layout.buffer_size)
        self._map(self._buffer_region(BUFFER_BASE, "Screen/Buffer", "screen_buffer"))
        if self._dual_buffer:
            self.screen_buffer1 = bytearray(self.layout.buffer_size)
            self._map(self._buffer_region(BUFFER1_BASE, "Screen/Buffer1", "screen_buffer1"))

        self._map(self._register(RANGE_ADDRESS, "Screen/Range", "screen_range", 0x07))
        self._map(self._register(MODE_ADDRESS, "Screen/Mode", "screen_mode", 0x07))
        self._map(self._register(CONTRAST_ADDRESS, "Screen/Contrast", "screen_contrast", 0x3F))

    def uninitialise(self) -> None:
        self.screen_buffer = None
        self.screen_buffer1 = None

    def frame(self) -> list[DrawCommand]:
        """Return the sprite copies that draw the current display contents."""
        self.require_frame = False

        ink_alpha_on = min(20 + self.screen_contrast * 16, 255)
        ink_alpha_off = max((self.screen_contrast - 8) * 7, 0)

        mode = self.screen_mode
        if mode == 4:
            enable_status, clear_dots = False, True
        elif mode == 5:
            enable_status, clear_dots = True, False
        elif mode == 6:
            enable_status, clear_dots = True, True
            ink_alpha_on, ink_alpha_off = 80, 20
        else:
            return []

        layout = self.layout
        buffer = self._buffer("screen_buffer")
        buffer1 = self._buffer("screen_buffer1") if self._dual_buffer else None
        colour = self.ink_colour
        commands: list[DrawCommand] = []

        if enable_status:
            for bitmap, info in zip(layout.sprites[1:], self.sprite_info[1:]):
                alpha = ink_alpha_on if buffer[bitmap.offset] & bitmap.mask else ink_alpha_off
                commands.append(DrawCommand(info.src, info.dest, alpha & 0xFF, colour))

        pixel = self.sprite_info[0]
        _, _, src_w, src_h = pixel.src
        dest_x, dest_y, dest_w, dest_h = pixel.dest
        spread = ink_alpha_on - ink_alpha_off
        for row in range(layout.n_row):
            y = dest_y + row * src_h
            x = dest_x
            for column in range(layout.row_size_disp):
                index = row * layout.row_size + layout.offset + column
                byte = 0 if clear_dots else buffer[index]
                byte1 = 0 if clear_dots or buffer1 is None else buffer1[index]
                for bit in range(7, -1, -1):
                    mask = 1 << bit
                    if buffer1 is not None:
                        alpha = ink_alpha_off
                        if byte & mask:
                            alpha = int(alpha + spread * 0.3)
                        if byte1 & mask:
                            alpha = int(alpha + spread * 0.7)
                    else:
                        alpha = ink_alpha_on if byte & mask else ink_alpha_off
                    commands.append(DrawCommand(pixel.src, (x, y, dest_w, dest_h), alpha & 0xFF, colour))
                    x += src_w
        return commands


def create_screen(machine: Machine) -> Screen:
    """Build the screen for the machine's hardware family."""
    return Screen(machine)