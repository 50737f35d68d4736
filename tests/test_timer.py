import pytest

from calcperiph.peripheral import HardwareId, Machine, Region
from calcperiph.timer import EXT_TO_INT_FREQUENCY, Timer


def make_timer(hardware=HardwareId.CLASSWIZ, real_hardware=True, cps=1_000_000):
    machine = Machine(hardware, model_info={"real_hardware": real_hardware}, cycles_per_second=cps)
    timer = Timer(machine)
    timer.initialise()
    timer.reset()
    return machine, timer


def test_interval_register_round_trip():
    machine, timer = make_timer()
    machine.bus.write(0xF020, 0x34)
    machine.bus.write(0xF021, 0x12)
    assert timer.data_interval == 0x1234
    assert machine.bus.read(0xF020) == 0x34
    assert machine.bus.read(0xF021) == 0x12


def test_interval_zero_becomes_one():
    machine, timer = make_timer()
    machine.bus.write(0xF020, 0)
    assert timer.data_interval == 1
    assert machine.bus.read(0xF020) == 1


def test_counter_write_clears():
    machine, timer = make_timer()
    timer.data_counter = 0x0203
    assert machine.bus.read(0xF023) == 0x02
    machine.bus.write(0xF022, 0x55)
    assert timer.data_counter == 0


def test_control_masks_low_bit_and_clears_raise():
    machine, timer = make_timer()
    timer.raise_required = True
    timer.timer_skipped = True
    machine.bus.write(0xF025, 0xFF)
    assert machine.bus.read(0xF025) == 1
    assert timer.raise_required is False
    assert timer.timer_skipped is False


def test_f024_plain_storage():
    machine, timer = make_timer()
    machine.bus.write(0xF024, 0xAB)
    assert machine.bus.read(0xF024) == 0xAB


def test_counter_reaches_interval_and_raises():
    machine, timer = make_timer()
    timer.interrupt_source.enabled = True
    machine.bus.write(0xF020, 3)
    machine.bus.write(0xF025, 1)
    for _ in range(3):
        timer.divide_ticks()
        assert timer.raise_required is False
    timer.divide_ticks()
    assert timer.raise_required is True
    assert timer.data_counter == 1


def test_no_raise_when_interrupt_disabled():
    machine, timer = make_timer()
    machine.bus.write(0xF020, 1)
    machine.bus.write(0xF025, 1)
    for _ in range(5):
        timer.divide_ticks()
    assert timer.raise_required is False


def test_counter_frozen_when_disabled():
    machine, timer = make_timer()
    machine.bus.write(0xF020, 5)
    for _ in range(4):
        timer.divide_ticks()
    assert timer.data_counter == 0


def test_tick_raises_then_acknowledges():
    machine, timer = make_timer()
    timer.interrupt_source.enabled = True
    timer.raise_required = True
    timer.tick()
    assert timer.interrupt_source.pending is True
    timer.tick_after_interrupts()
    assert timer.raise_required is False


def test_divide_step_schedule():
    machine, timer = make_timer(cps=EXT_TO_INT_FREQUENCY)
    assert timer.ext_to_int_int_done == 1
    assert timer.ext_to_int_next == timer.ext_to_int_int_done + 1
    timer.divide_ticks()
    assert timer.ext_to_int_next == timer.ext_to_int_int_done + 1


def test_divide_wraps_after_frequency_steps():
    machine, timer = make_timer()
    timer.ext_to_int_int_done = EXT_TO_INT_FREQUENCY - 1
    timer.ext_to_int_counter = 42
    timer.divide_ticks()
    assert timer.ext_to_int_int_done == 0
    assert timer.ext_to_int_counter == 0


def _emu_machine(ready, ki, ko):
    machine = Machine(HardwareId.CLASSWIZ_II, model_info={"real_hardware": False})
    keyboard = bytearray([ready, ki, ko])
    machine.bus.add_region(Region(0x88E00, 3, "kbd", buffer=keyboard))
    timer = Timer(machine)
    timer.initialise()
    machine.halt()
    return machine, timer, keyboard


@pytest.mark.parametrize("ki, ko, expected", [(4, 16, 1), (0, 0, 0)])
def test_emulator_keyboard_ready_handling(ki, ko, expected):
    machine, timer, keyboard = _emu_machine(8, ki, ko)
    timer.divide_ticks()
    assert timer.timer_skipped is True
    assert keyboard[0] == expected


def test_emulator_keyboard_waiting_skips():
    machine, timer, keyboard = _emu_machine(4, 0, 0)
    timer.divide_ticks()
    assert timer.timer_skipped is True
    assert keyboard[0] == 4


def test_skipped_timer_fires_at_one():
    machine, timer, keyboard = _emu_machine(4, 0, 0)
    timer.interrupt_source.enabled = True
    timer.data_interval = 100
    timer.data_control = 1
    timer.data_counter = 1
    timer.divide_ticks()
    assert timer.raise_required is True