"""
シリアル読み取りスレッドと送信スレッドが共有する車両の最新状態。
"""
from collections import namedtuple
import threading

from robocar_rc.parts.channel import DriveMode

StateSnapshot = namedtuple(
    "StateSnapshot",
    ["steering", "throttle", "throttle_feedback", "drive_mode", "record_enabled",
     "use_secondary_rc", "distance_cm"])


class VehicleState:
    """デコード済みの最新値。

    書き込むのはラインデコーダだけで、1 行分の更新の間 ``lock`` を保持する。
    読み取り側も同じ ``lock`` を取得するため、途中まで更新された状態が
    見えることはない。

    2 台目の受信機の値も常に保存しておき、どちらを返すかは読み取り時に
    ``use_secondary_rc`` で決める。
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.steering = 0.0
        self.throttle = 0.0
        self.secondary_steering = 0.0
        self.secondary_throttle = 0.0
        self.throttle_feedback = 0.0
        self.drive_mode = DriveMode.INVALID
        self.record_enabled = False
        self.use_secondary_rc = False
        self.distance_cm = None

    def _current_steering(self) -> float:
        return self.secondary_steering if self.use_secondary_rc else self.steering

    def _current_throttle(self) -> float:
        return self.secondary_throttle if self.use_secondary_rc else self.throttle

    def snapshot(self) -> StateSnapshot:
        with self.lock:
            return StateSnapshot(
                steering=self._current_steering(),
                throttle=self._current_throttle(),
                throttle_feedback=self.throttle_feedback,
                drive_mode=self.drive_mode,
                record_enabled=self.record_enabled,
                use_secondary_rc=self.use_secondary_rc,
                distance_cm=self.distance_cm,
            )

    def get_steering(self) -> float:
        with self.lock:
            return self._current_steering()

    def get_throttle(self) -> float:
        with self.lock:
            return self._current_throttle()

    def get_throttle_feedback(self) -> float:
        with self.lock:
            return self.throttle_feedback

    def get_drive_mode(self) -> DriveMode:
        with self.lock:
            return self.drive_mode

    def is_record_enabled(self) -> bool:
        with self.lock:
            return self.record_enabled
