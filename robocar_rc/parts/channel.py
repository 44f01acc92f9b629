"""
RC 受信機の PWM 値を車両の制御値へ変換する関数群。

ステアリングとスロットルは ``-1.0`` ～ ``1.0``、走行モードは :class:`DriveMode`、
録画スイッチと 2 台目の受信機の選択は真偽値へ変換する。
"""
from enum import IntEnum
from typing import Optional

from robocar_rc.utils import clamp


RECORD_THRESHOLD = 1800
SECONDARY_RC_THRESHOLD = 1900


class DriveMode(IntEnum):
    INVALID = 0
    USER = 1
    PILOT = 2
    COPILOT = 3


class PWMConfig:
    """PWM 値の範囲と中央値。

    中央値は ``min`` と ``max`` の中間でなくてもよい (非対称キャリブレーション)。
    ``middle`` を省略すると中間値を使い、2 点間の線形変換と同じ結果になる。
    """

    def __init__(self, min: int, max: int, middle: Optional[int] = None):
        if middle is None:
            middle = min + (max - min) // 2
        if not min < middle < max:
            raise ValueError(
                f"PWM の設定が不正です: min={min}, middle={middle}, max={max} "
                "(min < middle < max である必要があります)")
        self.min = min
        self.max = max
        self.middle = middle

    @classmethod
    def symmetric(cls, min: int, max: int) -> "PWMConfig":
        return cls(min, max)

    @classmethod
    def asymmetric(cls, min: int, max: int, middle: int) -> "PWMConfig":
        return cls(min, max, middle)

    def __eq__(self, other):
        if not isinstance(other, PWMConfig):
            return NotImplemented
        return (self.min, self.max, self.middle) == (other.min, other.max, other.middle)

    def __repr__(self):
        return f"PWMConfig(min={self.min}, max={self.max}, middle={self.middle})"


def convert_pwm_to_percent(value: int, config: PWMConfig) -> float:
    """PWM 値を ``-1.0`` ～ ``1.0`` に変換する。

    値を ``[min, max]`` に収めたうえで、中央値より下は ``[min, middle]`` を
    ``[-1, 0]`` に、上は ``[middle, max]`` を ``[0, 1]`` に線形に割り当てる。

    Args:
        value: 受信機から読み取った PWM 値。
        config: チャンネルの PWM 設定。

    Returns:
        float: 変換後の値。中央値ではちょうど ``0.0``。
    """
    value = clamp(value, config.min, config.max)
    if value == config.middle:
        return 0.0
    if value < config.middle:
        return (value - config.middle) / (config.middle - config.min)
    return (value - config.middle) / (config.max - config.middle)


class DriveModeBands:
    """走行モードチャンネルの区間分け。

    ``pilot_threshold`` を超えると PILOT。``copilot_threshold`` が設定されている
    場合は ``copilot_threshold`` を超え ``pilot_threshold`` 以下の区間が COPILOT。
    それ以外は USER。負の値は未受信として扱う。
    """

    def __init__(self, pilot_threshold: int = 1800, copilot_threshold: Optional[int] = None):
        if copilot_threshold is not None and copilot_threshold >= pilot_threshold:
            raise ValueError(
                f"COPILOT のしきい値 {copilot_threshold} は PILOT のしきい値 "
                f"{pilot_threshold} より小さくなければなりません")
        self.pilot_threshold = pilot_threshold
        self.copilot_threshold = copilot_threshold

    @classmethod
    def legacy(cls) -> "DriveModeBands":
        """USER と PILOT の 2 区間 (6 チャンネルフォーマット)。"""
        return cls(pilot_threshold=1800)

    @classmethod
    def extended(cls) -> "DriveModeBands":
        """USER, COPILOT, PILOT の 3 区間 (9 チャンネルフォーマット)。"""
        return cls(pilot_threshold=1800, copilot_threshold=1200)

    def classify(self, value: int) -> Optional[DriveMode]:
        if value < 0:
            # 値なし
            return None
        if value > self.pilot_threshold:
            return DriveMode.PILOT
        if self.copilot_threshold is not None and value > self.copilot_threshold:
            return DriveMode.COPILOT
        return DriveMode.USER

    def __repr__(self):
        return (f"DriveModeBands(pilot_threshold={self.pilot_threshold}, "
                f"copilot_threshold={self.copilot_threshold})")


def is_record_enabled(value: int, threshold: int = RECORD_THRESHOLD) -> bool:
    return value < threshold


def use_secondary_receiver(value: int, threshold: int = SECONDARY_RC_THRESHOLD) -> bool:
    return value > threshold
