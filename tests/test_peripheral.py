import pytest

from calcperiph.peripheral import (
    BusError,
    HardwareId,
    InterruptSource,
    Machine,
    MemoryBus,
    Peripheral,
    Region,
)


def test_region_buffer_round_trip():
    buf = bytearray(4)
    region = Region(0x100, 4, "buf", buffer=buf)
    region.write(0x102, 0xAB)
    assert region.read(0x102) == 0xAB
    assert buf[2] == 0xAB


def test_region_masks_written_value():
    region = Region(0x100, 1, "buf", buffer=bytearray(1))
    region.write(0x100, 0x1FF)
    assert region.read(0x100) == 0xFF


def test_region_callbacks_receive_offsets():
    seen = []
    region = Region(0x200, 8, "cb", reader=lambda off: off * 2, writer=lambda off, v: seen.append((off, v)))
    assert region.read(0x203) == 6
    region.write(0x205, 7)
    assert seen == [(5, 7)]


def test_region_contains_bounds():
    region = Region(0x10, 2, "r")
    assert region.contains(0x10)
    assert region.contains(0x11)
    assert not region.contains(0x12)
    assert not region.contains(0x0F)


def test_region_without_backing_reads_zero():
    region = Region(0, 1, "empty")
    region.write(0, 5)
    assert region.read(0) == 0


def test_region_access_outside_raises():
    region = Region(0x10, 2, "r", buffer=bytearray(2))
    with pytest.raises(BusError):
        region.read(0x12)


def test_region_rejects_small_buffer():
    with pytest.raises(ValueError):
        Region(0, 4, "r", buffer=bytearray(2))


def test_bus_routes_to_regions():
    bus = MemoryBus()
    a = bytearray(2)
    b = bytearray(2)
    bus.add_region(Region(0x10, 2, "a", buffer=a))
    bus.add_region(Region(0x00, 2, "b", buffer=b))
    bus.write(0x11, 9)
    bus.write(0x01, 4)
    assert a[1] == 9 and b[1] == 4
    assert bus.read(0x11) == 9
    assert [r.description for r in bus.regions] == ["b", "a"]


@pytest.mark.parametrize("base,size", [(0x0F, 2), (0x11, 4), (0x08, 0x20)])
def test_bus_rejects_overlap(base, size):
    bus = MemoryBus()
    bus.add_region(Region(0x10, 4, "first"))
    with pytest.raises(BusError):
        bus.add_region(Region(base, size, "second"))


def test_bus_unmapped_access_raises():
    bus = MemoryBus()
    bus.add_region(Region(0x10, 1, "r"))
    with pytest.raises(BusError):
        bus.read(0x11)
    with pytest.raises(BusError):
        bus.write(0x0, 1)


def test_interrupt_source_disabled_does_not_raise():
    source = InterruptSource(5)
    assert source.try_raise() is False
    assert source.pending is False


def test_interrupt_source_raise_and_clear():
    source = InterruptSource(9, enabled=True)
    assert source.try_raise() is True
    assert source.pending is True
    source.clear()
    assert source.pending is False


def test_machine_model_lookup():
    machine = Machine(HardwareId.CLASSWIZ, model_info={"real_hardware": True})
    assert machine.model("real_hardware") is True
    with pytest.raises(KeyError):
        machine.model("missing")


def test_machine_halt_stop_and_reset():
    class Counting(Peripheral):
        def __init__(self, machine):
            super().__init__(machine)
            self.resets = 0

        def reset(self):
            self.resets += 1

    machine = Machine(HardwareId.ES_PLUS)
    device = Counting(machine)
    machine.peripherals.append(device)
    machine.dsr = 3
    machine.halt()
    assert machine.running is False
    machine.reset()
    assert machine.running is True
    assert machine.dsr == 0
    assert device.resets == 1
    machine.stop()
    assert machine.stopped and not machine.running


def test_machine_memory_error_raises():
    with pytest.raises(BusError):
        Machine(HardwareId.ES_PLUS).handle_memory_error()


def test_peripheral_frame_clears_flag_and_maps_regions():
    machine = Machine(HardwareId.ES_PLUS)
    device = Peripheral(machine)
    device.require_frame = True
    device.frame()
    assert device.require_frame is False
    device._map(Region(0x40, 1, "x", buffer=bytearray(1)))
    machine.bus.write(0x40, 3)
    assert machine.bus.read(0x40) == 3
    assert len(device.regions) == 1