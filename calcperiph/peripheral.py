"""Core pieces shared by every peripheral: memory regions, the bus and the machine."""

from __future__ import annotations

import bisect
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, MutableSequence, Optional, Sequence, Union

Reader = Callable[[int], int]
Writer = Callable[[int, int], None]
Buffer = Union[bytearray, memoryview, bytes, Sequence[int], MutableSequence[int]]


class HardwareId(enum.Enum):
    """Calculator hardware families."""

    ES_PLUS = "es_plus"
    CLASSWIZ = "classwiz"
    CLASSWIZ_II = "classwiz_ii"


class BusError(Exception):
    """Raised on invalid memory mapping or access."""


@dataclass(eq=False)
class Region:
    """A window of the address space handled by a peripheral.

    ``reader`` and ``writer`` receive the offset from ``base``. When they are
    missing, ``buffer`` is used for the access instead; without a buffer reads
    give 0 and writes are ignored.
    """

    base: int
    size: int
    description: str
    reader: Optional[Reader] = None
    writer: Optional[Writer] = None
    buffer: Optional[Buffer] = None

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"region {self.description!r} has non-positive size")
        if self.base < 0:
            raise ValueError(f"region {self.description!r} has negative base")
        if self.buffer is not None and len(self.buffer) < self.size:
            raise ValueError(f"buffer of region {self.description!r} is too small")

    @property
    def end(self) -> int:
        """First address past the region."""
        return self.base + self.size

    def contains(self, address: int) -> bool:
        return self.base <= address < self.end

    def _offset(self, address: int) -> int:
        if not self.contains(address):
            raise BusError(f"address {address:06X} outside region {self.description!r}")
        return address - self.base

    def read(self, address: int) -> int:
        offset = self._offset(address)
        if self.reader is not None:
            return self.reader(offset) & 0xFF
        if self.buffer is not None:
            return self.buffer[offset] & 0xFF
        return 0

    def write(self, address: int, value: int) -> None:
        offset = self._offset(address)
        value &= 0xFF
        if self.writer is not None:
            self.writer(offset, value)
        elif self.buffer is not None:
            self.buffer[offset] = value  # type: ignore[index]


class MemoryBus:
    """Routes byte accesses to non-overlapping regions."""

    def __init__(self) -> None:
        self._starts: list[int] = []
        self._regions: list[Region] = []

    @property
    def regions(self) -> tuple[Region, ...]:
        return tuple(self._regions)

    def add_region(self, region: Region) -> Region:
        index = bisect.bisect_right(self._starts, region.base)
        if index > 0 and self._regions[index - 1].end > region.base:
            other = self._regions[index - 1]
            raise BusError(f"region {region.description!r} overlaps {other.description!r}")
        if index < len(self._regions) and self._regions[index].base < region.end:
            other = self._regions[index]
            raise BusError(f"region {region.description!r} overlaps {other.description!r}")
        self._starts.insert(index, region.base)
        self._regions.insert(index, region)
        return region

    def _find(self, address: int) -> Region:
        index = bisect.bisect_right(self._starts, address) - 1
        if index >= 0 and self._regions[index].contains(address):
            return self._regions[index]
        raise BusError(f"no region mapped at {address:06X}")

    def read(self, address: int) -> int:
        return self._find(address).read(address)

    def write(self, address: int, value: int) -> None:
        self._find(address).write(address, value)


@dataclass(eq=False)
class InterruptSource:
    """One maskable interrupt line."""

    index: int
    enabled: bool = False
    pending: bool = False

    def try_raise(self) -> bool:
        """Request the interrupt; returns whether it was raised."""
        if not self.enabled:
            return False
        self.pending = True
        return True

    def clear(self) -> None:
        self.pending = False


@dataclass(eq=False)
class Machine:
    """The emulated calculator as seen by its peripherals."""

    hardware_id: HardwareId
    model_info: dict[str, Any] = field(default_factory=dict)
    argv: dict[str, str] = field(default_factory=dict)
    rom: bytes = b""
    cycles_per_second: int = 1_000_000
    bus: MemoryBus = field(default_factory=MemoryBus)
    peripherals: list["Peripheral"] = field(default_factory=list)
    dsr: int = 0
    halted: bool = False
    stopped: bool = False
    memory_errors: int = 0

    @property
    def running(self) -> bool:
        return not (self.halted or self.stopped)

    def model(self, key: str) -> Any:
        try:
            return self.model_info[key]
        except KeyError:
            raise KeyError(f"model has no entry {key!r}") from None

    def halt(self) -> None:
        self.halted = True

    def stop(self) -> None:
        self.stopped = True

    def reset(self) -> None:
        self.halted = False
        self.stopped = False
        self.dsr = 0
        for peripheral in self.peripherals:
            peripheral.reset()

    def handle_memory_error(self) -> None:
        """Record an invalid memory access and raise it."""
        self.memory_errors += 1
        raise BusError(f"invalid memory access (error #{self.memory_errors})")


class Peripheral:
    """Base class of all devices attached to the machine."""

    def __init__(self, machine: Machine) -> None:
        self.machine = machine
        # Set when the visible state changed and frame() should be called.
        self.require_frame = False
        self.regions: list[Region] = []

    def _map(self, region: Region) -> Region:
        self.machine.bus.add_region(region)
        self.regions.append(region)
        return region

    def initialise(self) -> None:
        pass

    def uninitialise(self) -> None:
        pass

    def tick(self) -> None:
        pass

    def tick_after_interrupts(self) -> None:
        pass

    def frame(self) -> Any:
        self.require_frame = False

    def ui_event(self, event: Any) -> None:
        pass

    def reset(self) -> None:
        pass