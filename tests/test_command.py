import pytest

from cashdrawer_bridge.command import KICK_LENGTH, KICK_PREFIX, DrawerOptions, encode
from cashdrawer_bridge.errors import ErrorCode, InvalidArgumentError


class TestEncode:

    def test_default_command(self):
        assert encode() == b'\x1b\x70\x00\x32\xfa'
        assert encode(DrawerOptions()) == b'\x1b\x70\x00\x32\xfa'

    def test_layout(self):
        command = encode(DrawerOptions(pin=1, pulse_on_time=25, pulse_off_time=50))
        assert len(command) == KICK_LENGTH
        assert command[:2] == KICK_PREFIX
        assert command[2:] == bytes((1, 25, 50))

    def test_deterministic(self):
        options = DrawerOptions(pin=1, pulse_on_time=7, pulse_off_time=9)
        assert encode(options) == encode(DrawerOptions(pin=1, pulse_on_time=7, pulse_off_time=9))

    def test_pin_only_changes_pin_byte(self):
        a = encode(DrawerOptions(pin=0))
        b = encode(DrawerOptions(pin=1))
        assert [i for i in range(KICK_LENGTH) if a[i] != b[i]] == [2]

    @pytest.mark.parametrize('field, index', [('pulse_on_time', 3), ('pulse_off_time', 4)])
    def test_timing_only_changes_its_byte(self, field, index):
        a = encode(DrawerOptions(**{field: 0}))
        b = encode(DrawerOptions(**{field: 255}))
        assert [i for i in range(KICK_LENGTH) if a[i] != b[i]] == [index]
        assert b[index] == 255

    def test_boundaries(self):
        assert encode(DrawerOptions(pin=1, pulse_on_time=255, pulse_off_time=0))[2:] == b'\x01\xff\x00'


class TestDrawerOptions:

    @pytest.mark.parametrize('kwargs', [
        {'pin': 2},
        {'pin': -1},
        {'pulse_on_time': 256},
        {'pulse_off_time': -1},
        {'pulse_on_time': 1.5},
        {'pulse_off_time': '250'},
        {'pin': True},
    ])
    def test_rejects_out_of_domain(self, kwargs):
        with pytest.raises(InvalidArgumentError) as exc_info:
            DrawerOptions(**kwargs)
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT

    def test_from_mapping_camel_case(self):
        options = DrawerOptions.from_mapping({'pin': 1, 'pulseOnTime': 10, 'pulseOffTime': 20})
        assert options == DrawerOptions(pin=1, pulse_on_time=10, pulse_off_time=20)

    def test_from_mapping_snake_case(self):
        options = DrawerOptions.from_mapping({'pulse_on_time': 10})
        assert options == DrawerOptions(pulse_on_time=10)

    def test_from_mapping_uses_defaults(self):
        defaults = DrawerOptions(pin=1, pulse_on_time=30, pulse_off_time=60)
        options = DrawerOptions.from_mapping({'pulseOffTime': 99, 'unused': 'x'}, defaults)
        assert options == DrawerOptions(pin=1, pulse_on_time=30, pulse_off_time=99)

    def test_from_mapping_none_values_fall_back(self):
        options = DrawerOptions.from_mapping({'pin': None, 'pulseOnTime': None})
        assert options == DrawerOptions()

    def test_from_mapping_rejects_non_mapping(self):
        with pytest.raises(InvalidArgumentError):
            DrawerOptions.from_mapping([1, 2, 3])
