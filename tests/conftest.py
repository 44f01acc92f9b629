import os
import threading

import pytest

from robocar_rc.config import load_config

DATA_PATH = os.path.join(os.path.dirname(os.path.realpath(__file__)), 'data')


class FakeSerial:
    """``SerialPort`` の代わりに用意した行を返す。行がなくなるとストリーム終了。"""

    def __init__(self, lines=None):
        self.lines = list(lines or [])
        self.stopped = False

    def readln(self):
        if self.stopped or not self.lines:
            return (False, "")
        return (True, self.lines.pop(0))

    def stop(self):
        self.stopped = True
        return self


class RecordingPublish:
    """``publish(topic, payload)`` の呼び出しを記録する。"""

    def __init__(self):
        self.lock = threading.Lock()
        self.calls = []
        self.published = threading.Event()

    def __call__(self, topic, payload):
        with self.lock:
            self.calls.append((topic, payload))
        self.published.set()

    def last(self):
        """トピックごとの最後のペイロード。"""
        with self.lock:
            return {topic: payload for topic, payload in self.calls}


@pytest.fixture
def fake_serial():
    return FakeSerial


@pytest.fixture
def recorder():
    return RecordingPublish()


@pytest.fixture
def default_cfg():
    return load_config(environ={})


@pytest.fixture
def threshold_json():
    return os.path.join(DATA_PATH, 'threshold_config.json')
