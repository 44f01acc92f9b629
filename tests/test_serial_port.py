import pytest

from robocar_rc.parts.serial_port import SerialPort, SerialPortError, get_serial_port


@pytest.fixture
def port():
    sp = SerialPort("loop://", timeout=0.05).start()
    yield sp
    sp.stop()


def test_readln(port):
    port.ser.write(b"12345,1,2\n")
    assert port.readln() == (True, "12345,1,2\n")


def test_readln_timeout(port):
    assert port.readln() == (True, "")


def test_readln_holds_partial_line(port):
    port.ser.write(b"12350,1958,1948,0,0,998,1987,50,4")
    assert port.readln() == (True, "")
    port.ser.write(b"2\r\n")
    assert port.readln() == (True, "12350,1958,1948,0,0,998,1987,50,42\r\n")
    assert port.readln() == (True, "")


def test_readln_undecodable(port):
    port.ser.write(b"\xff\xfe\n")
    assert port.readln() == (True, "")


def test_readln_after_stop(port):
    port.ser.write(b"partial")
    assert port.readln() == (True, "")
    port.stop()
    assert not port.is_open
    assert port.readln() == (False, "")
    # 2 回目の stop は何もしない
    port.stop()


def test_open_failure():
    with pytest.raises(SerialPortError):
        SerialPort("/dev/does-not-exist-robocar").start()


def test_get_serial_port(default_cfg):
    sp = get_serial_port(default_cfg)
    assert sp.port == "/dev/serial0"
    assert sp.baudrate == 115200
    assert sp.timeout == 1.0

    default_cfg.SERIAL_TIMEOUT = None
    assert get_serial_port(default_cfg).timeout is None
