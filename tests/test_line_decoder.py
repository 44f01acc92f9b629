import logging
import threading
import time

import pytest

from robocar_rc.parts.channel import DriveMode, DriveModeBands, PWMConfig
from robocar_rc.parts.line_decoder import (EXTENDED, LEGACY, ChannelMap, LineDecoder,
                                           get_line_decoder, get_line_format)
from robocar_rc.parts.serial_port import SerialPort
from robocar_rc.parts.vehicle_state import VehicleState

MIN_PWM_ANGLE = 999
MAX_PWM_ANGLE = 1985
MIDDLE_PWM_ANGLE = (MAX_PWM_ANGLE - MIN_PWM_ANGLE) // 2 + MIN_PWM_ANGLE

DEFAULT_CHANNELS = [678, 910, 1012, 1678, 1910, 112, 0, 0, 0]


def extended_line(ts=12345, **channels):
    values = list(DEFAULT_CHANNELS)
    for key, value in channels.items():
        values[int(key[2:]) - 1] = value
    return f"{ts}," + ",".join(str(v) for v in values) + ",50\n"


def make_decoder(state=None, line_format=EXTENDED, throttle=None, **kwargs):
    return LineDecoder(
        state or VehicleState(),
        line_format=line_format,
        steering=PWMConfig.asymmetric(MIN_PWM_ANGLE, MAX_PWM_ANGLE, MIDDLE_PWM_ANGLE),
        throttle=throttle or PWMConfig(972, 1954),
        **kwargs)


@pytest.mark.parametrize('name, content, throttle_config, throttle, steering, drive_mode, record', [
    ("good value", extended_line(), None, -1., -1., DriveMode.USER, False),
    ("invalid line", "12350,invalid line\n", None, 0., 0., DriveMode.INVALID, False),
    ("switch record on", extended_line(ch5=998), None, -1., -1., DriveMode.USER, True),
    ("switch record off", extended_line(ch5=1987), None, -1., -1., DriveMode.USER, False),
    ("switch record off at 1850", extended_line(ch5=1850), None, -1., -1., DriveMode.USER, False),
    ("switch record on at 1003", extended_line(ch5=1003), None, -1., -1., DriveMode.USER, True),
    ("drive mode user", extended_line(ch6=998), None, -1., -1., DriveMode.USER, False),
    ("drive mode pilot", extended_line(ch6=1987), None, -1., -1., DriveMode.PILOT, False),
    ("drive mode pilot at 1850", extended_line(ch6=1850), None, -1., -1., DriveMode.PILOT, False),
    ("drive mode copilot", extended_line(ch6=1500), None, -1., -1., DriveMode.COPILOT, False),
    ("drive mode user at 1003", extended_line(ch6=1003), None, -1., -1., DriveMode.USER, False),
    ("drive mode no value", extended_line(ch6=-1), None, -1., -1., DriveMode.INVALID, False),
    ("steering over left", extended_line(ch1=99), None, -1., -1., DriveMode.USER, False),
    ("steering left", extended_line(ch1=MIN_PWM_ANGLE + 40), None, -1., -0.92, DriveMode.USER, False),
    ("steering middle", extended_line(ch1=1450), None, -1., -0.09, DriveMode.USER, False),
    ("steering right", extended_line(ch1=1958), None, -1., 0.95, DriveMode.USER, False),
    ("steering over right", extended_line(ch1=2998), None, -1., 1., DriveMode.USER, False),
    ("throttle over down", extended_line(ch2=99), None, -1., -1., DriveMode.USER, False),
    ("throttle down", extended_line(ch2=998), None, -0.95, -1., DriveMode.USER, False),
    ("throttle stop", extended_line(ch2=1450), PWMConfig(1000, 1900), 0., -1., DriveMode.USER, False),
    ("throttle up", extended_line(ch2=1948), None, 0.99, -1., DriveMode.USER, False),
    ("throttle over up", extended_line(ch2=2998), None, 1., -1., DriveMode.USER, False),
    ("throttle zero not middle", extended_line(ch2=1600), PWMConfig(1000, 1700, 1500),
     0.5, -1., DriveMode.USER, False),
    ("use 2nd rc", extended_line(ch1=1000, ch2=1000, ch3=1950, ch7=2000, ch8=2008), None,
     1., 1., DriveMode.USER, False),
])
def test_decode(name, content, throttle_config, throttle, steering, drive_mode, record):
    state = VehicleState()
    decoder = make_decoder(state, throttle=throttle_config)
    decoder.decode(content)

    assert "%0.2f" % state.get_throttle() == "%0.2f" % throttle, name
    assert "%0.2f" % state.get_steering() == "%0.2f" % steering, name
    assert state.get_drive_mode() == drive_mode, name
    assert state.is_record_enabled() == record, name


def test_malformed_line_keeps_state():
    state = VehicleState()
    decoder = make_decoder(state)
    assert decoder.decode(extended_line(ch1=1958, ch5=998, ch6=1987))
    before = state.snapshot()

    assert not decoder.decode("12350,invalid line\n")
    assert not decoder.decode("12350,1,2,3\n")
    assert not decoder.decode(extended_line(ch1=1000).replace(",50\n", ",50,abc\n"))
    assert state.snapshot() == before


def test_unterminated_line_is_rejected():
    state = VehicleState()
    decoder = LineDecoder(state, line_format=LEGACY)
    assert decoder.decode("12345,1958,1948,0,0,998,1987,50,42\n")
    before = state.snapshot()

    # タイムアウトで途中まで読んだ行
    assert not decoder.decode("12350,1958,1948,0,0,998,1987,50,4")
    assert not decoder.decode("12350,998,998,0,0,1987,1500,5")
    assert not decoder.decode("12350,998,998,0,0,1987,1500,50\r")
    assert state.snapshot() == before
    assert state.snapshot().distance_cm == 42


def test_partial_serial_read_is_decoded_once_complete():
    state = VehicleState()
    decoder = LineDecoder(state, line_format=LEGACY)
    port = SerialPort("loop://", timeout=0.05).start()
    try:
        port.ser.write(b"12350,1958,1948,0,0,998,1987,50,4")
        ok, line = port.readln()
        assert ok
        assert line == ""
        assert state.snapshot().distance_cm is None

        port.ser.write(b"2\n")
        ok, line = port.readln()
        assert ok
        assert decoder.decode(line)
        assert state.snapshot().distance_cm == 42
    finally:
        port.stop()


def test_drive_mode_no_value_keeps_previous_mode():
    state = VehicleState()
    decoder = make_decoder(state)
    decoder.decode(extended_line(ch6=1987))
    decoder.decode(extended_line(ch6=-1))
    assert state.get_drive_mode() == DriveMode.PILOT


def test_secondary_receiver_selected_at_read_time():
    state = VehicleState()
    decoder = make_decoder(state)
    decoder.decode(extended_line(ch1=1958, ch2=1948, ch3=1950, ch7=972, ch8=972))
    assert state.get_steering() == -1.0
    assert state.get_throttle() == -1.0
    # 主受信機の値も保存されている
    assert state.steering == pytest.approx(0.945, abs=0.01)

    decoder.decode(extended_line(ch1=1958, ch2=1948, ch3=1012, ch7=972, ch8=972))
    assert state.get_steering() == pytest.approx(0.945, abs=0.01)
    assert state.secondary_steering == -1.0


def test_throttle_feedback():
    state = VehicleState()
    decoder = make_decoder(state)
    decoder.decode(extended_line(ch4=800))
    assert state.get_throttle_feedback() == pytest.approx(0.275)
    decoder.decode(extended_line(ch4=11000))
    assert state.get_throttle_feedback() == 0.0


def test_carriage_return_and_sensor_field():
    state = VehicleState()
    decoder = make_decoder(state)
    assert decoder.decode(extended_line().replace("\n", "\r\n"))
    assert decoder.decode(extended_line().replace(",50\n", ",50,42\r\n"))
    assert state.snapshot().distance_cm == 42


def test_extended_rejects_legacy_line():
    decoder = make_decoder()
    assert not decoder.decode("12345,1958,1948,0,0,998,1987,50\n")


def test_legacy_format():
    state = VehicleState()
    decoder = LineDecoder(state, line_format=LEGACY, steering=PWMConfig(960, 1980, 1470))

    assert decoder.decode("12345,1958,1948,1950,800,998,1987,50\n")
    snapshot = state.snapshot()
    assert round(snapshot.steering, 2) == 0.96
    assert round(snapshot.throttle, 2) == 0.99
    assert snapshot.record_enabled is True
    assert snapshot.drive_mode == DriveMode.PILOT
    # legacy ではチャンネル 3, 4 を使わない
    assert snapshot.use_secondary_rc is False
    assert snapshot.throttle_feedback == 0.0
    assert snapshot.distance_cm is None

    assert decoder.decode("12350,998,1948,0,0,1987,1500,50,42\n")
    snapshot = state.snapshot()
    assert round(snapshot.steering, 2) == -0.93
    assert snapshot.record_enabled is False
    # legacy は 2 区間
    assert snapshot.drive_mode == DriveMode.USER
    assert snapshot.distance_cm == 42

    # 距離が空の場合は前回値を残す
    assert decoder.decode("12355,998,1948,0,0,1987,1500,50,\n")
    assert state.snapshot().distance_cm == 42


def test_field_parse_failure_keeps_previous_value():
    state = VehicleState()
    decoder = make_decoder(state)
    decoder.decode(extended_line(ch1=1958, ch2=1948))
    steering = state.get_steering()

    values = extended_line(ch2=998).strip().split(",")
    values[1] = "abc"
    decoder.update_values(values)

    assert state.get_steering() == steering
    assert round(state.get_throttle(), 2) == -0.95


def test_record_change_is_logged_once(caplog):
    decoder = make_decoder()
    with caplog.at_level(logging.INFO, logger="robocar_rc.parts.line_decoder"):
        decoder.decode(extended_line(ch5=998))
        decoder.decode(extended_line(ch5=998))
        decoder.decode(extended_line(ch5=1987))
    messages = [r.getMessage() for r in caplog.records if "'record'" in r.getMessage()]
    assert len(messages) == 2


def test_update_holds_state_lock():
    state = VehicleState()
    decoder = make_decoder(state)
    state.lock.acquire()
    try:
        t = threading.Thread(target=decoder.decode, args=(extended_line(ch1=1958, ch5=998),))
        t.start()
        time.sleep(0.05)
        assert state.steering == 0.0
        assert state.record_enabled is False
    finally:
        state.lock.release()
    t.join(timeout=1)
    assert not t.is_alive()
    assert state.get_steering() > 0.9
    assert state.is_record_enabled() is True


def test_custom_drive_mode_bands():
    state = VehicleState()
    decoder = make_decoder(state, drive_mode_bands=DriveModeBands.legacy())
    decoder.decode(extended_line(ch6=1500))
    assert state.get_drive_mode() == DriveMode.USER


def test_channel_out_of_range():
    with pytest.raises(ValueError):
        LineDecoder(VehicleState(), line_format=LEGACY, channels=ChannelMap(record=7))


def test_get_line_format():
    assert get_line_format("legacy") is LEGACY
    assert get_line_format("extended") is EXTENDED
    with pytest.raises(ValueError):
        get_line_format("unknown")


def test_get_line_decoder(default_cfg, threshold_json):
    decoder = get_line_decoder(default_cfg, VehicleState())
    assert decoder.line_format is EXTENDED
    assert decoder.drive_mode_bands.copilot_threshold == 1200
    assert decoder.steering_config == PWMConfig(960, 1980, 1470)
    assert decoder.throttle_config == PWMConfig(972, 1954, 1463)

    default_cfg.LINE_FORMAT = "legacy"
    default_cfg.THROTTLE_PWM_MIDDLE = "1500"
    default_cfg.THROTTLE_FEEDBACK_CONFIG = threshold_json
    decoder = get_line_decoder(default_cfg, VehicleState())
    assert decoder.line_format is LEGACY
    assert decoder.drive_mode_bands.copilot_threshold is None
    assert decoder.throttle_config.middle == 1500

    default_cfg.DRIVE_MODE_COPILOT_THRESHOLD = "1300"
    decoder = get_line_decoder(default_cfg, VehicleState())
    assert decoder.drive_mode_bands.copilot_threshold == 1300
