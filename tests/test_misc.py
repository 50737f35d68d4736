import pytest

from calcperiph.misc import UNKNOWN_ADDRESSES, Miscellaneous
from calcperiph.peripheral import BusError, HardwareId, Machine


def make(hw):
    machine = Machine(hw)
    misc = Miscellaneous(machine)
    misc.initialise()
    return machine, misc


def test_dsr_maps_to_machine_register():
    machine, _ = make(HardwareId.CLASSWIZ)
    machine.bus.write(0xF000, 0x04)
    assert machine.dsr == 0x04
    machine.dsr = 0x07
    assert machine.bus.read(0xF000) == 0x07


def test_es_plus_maps_only_common_registers():
    machine, misc = make(HardwareId.ES_PLUS)
    machine.bus.write(0xF041, 0x12)
    assert machine.bus.read(0xF041) == 0x12
    assert misc.data[UNKNOWN_ADDRESSES.index(0xF041)] == 0x12
    with pytest.raises(BusError):
        machine.bus.read(0xF035)


@pytest.mark.parametrize("hw", [HardwareId.CLASSWIZ, HardwareId.CLASSWIZ_II])
def test_classwiz_maps_thirteen_registers(hw):
    machine, _ = make(hw)
    for address in UNKNOWN_ADDRESSES[:13]:
        machine.bus.write(address, address & 0xFF)
        assert machine.bus.read(address) == address & 0xFF
    with pytest.raises(BusError):
        machine.bus.read(0xF037)


def test_wide_registers_round_trip():
    machine, misc = make(HardwareId.ES_PLUS)
    for offset in range(8):
        machine.bus.write(0xF048 + offset, offset + 1)
    assert bytes(misc.data_f048) == bytes(range(1, 9))
    machine.bus.write(0xF223, 0xAA)
    assert machine.bus.read(0xF223) == 0xAA
    assert misc.data_f220[3] == 0xAA


def test_battery_registers_absent_on_classwiz():
    machine, _ = make(HardwareId.CLASSWIZ)
    with pytest.raises(BusError):
        machine.bus.read(0xF0D1)


def test_battery_check_answers_six():
    machine, misc = make(HardwareId.CLASSWIZ_II)
    machine.bus.write(0xF0D0, 3)
    machine.bus.write(0xF0D2, 0)
    machine.bus.write(0xF0D1, 5)
    assert machine.bus.read(0xF0D1) == 6
    assert misc.data_f0d1 == 6


@pytest.mark.parametrize("f0d0,f0d2,value", [(2, 0, 5), (3, 1, 5), (3, 0, 4)])
def test_battery_register_plain_write(f0d0, f0d2, value):
    machine, _ = make(HardwareId.CLASSWIZ_II)
    machine.bus.write(0xF0D0, f0d0)
    machine.bus.write(0xF0D2, f0d2)
    machine.bus.write(0xF0D1, value)
    assert machine.bus.read(0xF0D1) == value
    assert machine.bus.read(0xF0D0) == f0d0