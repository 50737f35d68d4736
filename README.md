# calcperiph

Models of the memory-mapped peripherals of a family of scientific
calculators (ES PLUS, ClassWiz and ClassWiz II hardware), written as plain
Python objects that hang off a small memory bus.

Each peripheral registers its I/O registers as `Region`s on the shared
`MemoryBus` of a `Machine`. Whatever drives the machine (a CPU core, or a
test) reads and writes bytes at addresses, and the peripheral reacts the way
the hardware does.

## What is in the package

| Module | Contents |
| --- | --- |
| `calcperiph.peripheral` | `HardwareId`, `Region`, `MemoryBus`, `BusError`, `InterruptSource`, `Machine` and the `Peripheral` base class |
| `calcperiph.utils` | `parse_colored_spans_config`, `MarkedSpan`, `SpansConfigError`, `SpansWatcher`, `parse_argv`, `file_exists`, `mtime_ms` |
| `calcperiph.misc` | `Miscellaneous`: the DSR register, unidentified scratch registers and the ClassWiz II battery registers |
| `calcperiph.standby` | `StandbyControl`: HALT, STOP and the ClassWiz II shutdown sequence |
| `calcperiph.timer` | `Timer`: the interval timer and its interrupt |
| `calcperiph.romwindow` | `ROMWindow`: maps the ROM image into the address space for each hardware family |
| `calcperiph.ram` | `BatteryBackedRAM`: the RAM, with optional loading and saving of an image file |
| `calcperiph.bcdcalc` | `BCDCalc`, `calc_addr`, `bcd_calculate`: the BCD arithmetic coprocessor |
| `calcperiph.keyboard` | `Keyboard`, `Button`, `ButtonType`, `MouseButtonEvent`, `KeyEvent`: the key matrix, including ghosting |
| `calcperiph.screen` | `Screen`, `SpriteBitmap`, `SpriteInfo`, `DrawCommand`, `create_screen`: the LCD controller |

## The machine

```python
from calcperiph.peripheral import HardwareId, Machine
from calcperiph.timer import Timer

machine = Machine(HardwareId.CLASSWIZ, model_info={"real_hardware": True})
timer = Timer(machine)
machine.peripherals.append(timer)
timer.initialise()
machine.bus.write(0xF020, 0x10)   # timer interval, low byte
```

- `model_info` holds the model description the peripherals ask for through
  `Machine.model(key)`: for example `real_hardware`, `pd_value`,
  `button_map`, `ink_colour` and the `rsd_*` sprite entries. A missing key
  raises `KeyError`.
- `argv` holds options such as `ram`, `clean_ram`, `preserve_ram` and
  `strict_memory`; `utils.parse_argv` builds it from `key=value` arguments,
  taking a bare argument as the `model` entry.
- `rom` is the ROM image mapped by `ROMWindow`.
- `halt()`, `stop()` and `reset()` change the run state; `reset()` also
  resets every peripheral in `peripherals`.
- `handle_memory_error()` counts the error and raises `BusError`; a ROM
  write with `strict_memory` set ends up here.

`MemoryBus.add_region` refuses overlapping regions, and an access to an
unmapped address raises `BusError`.

## Peripheral lifecycle

Every peripheral derives from `Peripheral` and is driven through the same
calls:

- `initialise()` registers its regions on the bus;
- `reset()` puts the registers back to their power-on values;
- `tick()` and `tick_after_interrupts()` run once per emulated cycle;
- `frame()` clears `require_frame` and returns what the peripheral draws:
  `Keyboard.frame()` returns the rectangles and colours to shade over
  pressed keys, `Screen.frame()` a list of `DrawCommand`s;
- `ui_event(event)` passes on input; `Keyboard` accepts `MouseButtonEvent`
  (`"left"` presses, `"right"` toggles a stuck key) and `KeyEvent` (a key
  name from the button map);
- `uninitialise()` releases resources, for example saving the RAM image.

## BCD helpers

The coprocessor's scratch registers live at fixed addresses, which
`calc_addr` computes from a register number and a byte offset:

```python
from calcperiph.bcdcalc import calc_addr, bcd_calculate

calc_addr(0, 0)     # 0xF480, the first byte of the first parameter register

# Add four BCD digits with no incoming carry.
# The 16-bit BCD result is in the low bits, the carry out in bit 16.
bcd_calculate(0, 0x0199, 0x0001, False)   # 0x0200
```

## Marked memory spans

A debugger can colour ranges of memory from a small text file, one span per
line:

```
# start, end or length, colour [, description]
D180,0xD1FF,FF0000
D200,16,80FF0000,input buffer
```

- the start is hexadecimal;
- the second field is an end address if it begins with `0x`, otherwise a
  decimal length;
- the colour is `RRGGBB` or `AARRGGBB`; an alpha of zero becomes 50;
- a fourth field, if present, is the description;
- lines starting with `#` and lines with fewer than three fields are skipped.

```python
from calcperiph.utils import parse_colored_spans_config

for span in parse_colored_spans_config("mem-spans.txt"):
    print(span.start, span.length, span.color, span.desc)
```

A file that cannot be opened raises `SpansConfigError`. `SpansWatcher`
calls a callback with the spans: `poll()` checks once, re-reading the file
when its modification time changed and passing an empty list when the file
is gone; `start()` polls on a background thread (every second by default)
until `stop()`.

## What the package does not do

- There is no CPU core and no instruction execution; the bus is driven by
  whatever code uses the package.
- Nothing is drawn on screen. `Screen.frame()` and `Keyboard.frame()` only
  return what to draw, and there is no window or event loop.
- There is no command to run; the package is a library only.
- Model descriptions are not read from files; `model_info` is a plain
  dictionary supplied by the caller.

## Testing

The test suite uses pytest, installed with the `test` extra.