"""
Arduino から受信した 1 行を解析し、:class:`VehicleState` を更新するデコーダ。

行の形式::

    timestamp,ch1,ch2,ch3,ch4,ch5,ch6[,ch7,ch8,ch9],frequency[,sensor]\\r\\n

6 チャンネルの ``legacy`` フォーマットと 9 チャンネルの ``extended``
フォーマットがある。どちらも末尾のセンサー値 (距離 cm) は省略できる。
"""
from collections import namedtuple
import logging
import re
from typing import List, Optional

from robocar_rc.parts.channel import (DriveModeBands, PWMConfig, RECORD_THRESHOLD,
                                      SECONDARY_RC_THRESHOLD, convert_pwm_to_percent,
                                      is_record_enabled, use_secondary_receiver)
from robocar_rc.parts.threshold import ThresholdConfig
from robocar_rc.parts.vehicle_state import VehicleState
from robocar_rc.utils import optional_int, parse_int

logger = logging.getLogger(__name__)


class LineFormat:
    """行フォーマット。

    Args:
        name: フォーマット名。
        channel_count: 行に含まれるチャンネル数。
        extended_channels: 2 台目の受信機とスロットルフィードバックの
            チャンネルを扱うかどうか。
    """

    def __init__(self, name: str, channel_count: int, extended_channels: bool):
        self.name = name
        self.channel_count = channel_count
        self.extended_channels = extended_channels

    @property
    def frequency_index(self) -> int:
        return self.channel_count + 1

    @property
    def sensor_index(self) -> int:
        return self.channel_count + 2

    def default_drive_mode_bands(self) -> DriveModeBands:
        if self.extended_channels:
            return DriveModeBands.extended()
        return DriveModeBands.legacy()

    def __repr__(self):
        return f"LineFormat({self.name!r}, channel_count={self.channel_count})"


LEGACY = LineFormat("legacy", 6, extended_channels=False)
EXTENDED = LineFormat("extended", 9, extended_channels=True)

LINE_FORMATS = {f.name: f for f in (LEGACY, EXTENDED)}


def get_line_format(name: str) -> LineFormat:
    try:
        return LINE_FORMATS[name]
    except KeyError:
        raise ValueError(
            f"未知の行フォーマット '{name}' です。利用可能: {', '.join(LINE_FORMATS)}") from None


# 各値は 1 始まりのチャンネル番号
ChannelMap = namedtuple(
    "ChannelMap",
    ["steering", "throttle", "secondary_select", "throttle_feedback", "record",
     "drive_mode", "secondary_steering", "secondary_throttle"],
    defaults=[1, 2, 3, 4, 5, 6, 7, 8])


def _strip_line_end(line: str) -> Optional[str]:
    """行末の ``\\n`` (と直前の ``\\r``) を取り除く。行末がなければ ``None``。"""
    if not line.endswith("\n"):
        return None
    line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


class LineDecoder:
    """シリアルの 1 行を解析し、チャンネルごとの変換を車両状態へ反映する。

    設定はインスタンスごとに保持し、生成後は変更しない。
    """

    def __init__(
        self,
        state: VehicleState,
        line_format: LineFormat = EXTENDED,
        steering: PWMConfig = None,
        throttle: PWMConfig = None,
        secondary_steering: PWMConfig = None,
        secondary_throttle: PWMConfig = None,
        feedback_thresholds: ThresholdConfig = None,
        drive_mode_bands: DriveModeBands = None,
        record_threshold: int = RECORD_THRESHOLD,
        secondary_threshold: int = SECONDARY_RC_THRESHOLD,
        channels: ChannelMap = ChannelMap(),
    ):
        self.state = state
        self.line_format = line_format
        self.steering_config = steering or PWMConfig(960, 1980)
        self.throttle_config = throttle or PWMConfig(972, 1954)
        self.secondary_steering_config = secondary_steering or PWMConfig(972, 1954)
        self.secondary_throttle_config = secondary_throttle or PWMConfig(972, 1954)
        self.feedback_thresholds = feedback_thresholds or ThresholdConfig.default()
        self.drive_mode_bands = drive_mode_bands or line_format.default_drive_mode_bands()
        self.record_threshold = record_threshold
        self.secondary_threshold = secondary_threshold
        self.channels = channels

        self._handlers = [
            (channels.steering, self._process_steering),
            (channels.throttle, self._process_throttle),
            (channels.record, self._process_record),
            (channels.drive_mode, self._process_drive_mode),
        ]
        if line_format.extended_channels:
            self._handlers += [
                (channels.secondary_select, self._process_secondary_select),
                (channels.throttle_feedback, self._process_throttle_feedback),
                (channels.secondary_steering, self._process_secondary_steering),
                (channels.secondary_throttle, self._process_secondary_throttle),
            ]
        for channel, _ in self._handlers:
            if not 1 <= channel <= line_format.channel_count:
                raise ValueError(
                    f"チャンネル {channel} は {line_format.name} フォーマットの範囲外です "
                    f"(1-{line_format.channel_count})")

        self._pattern = self._build_pattern(line_format, channels.drive_mode)

    @staticmethod
    def _build_pattern(line_format: LineFormat, drive_mode_channel: int):
        # 走行モードは未受信のとき負の値になる
        fields = [r"\d+"]
        for channel in range(1, line_format.channel_count + 1):
            fields.append(r"-?\d+" if channel == drive_mode_channel else r"\d+")
        fields.append(r"\d+")
        return re.compile(",".join(fields) + r"(?:,(?:\d+)?)?")

    def parse(self, line: str) -> Optional[List[str]]:
        """行を検証してフィールドのリストを返す。不正な行と行末のない行は ``None``。"""
        content = _strip_line_end(line)
        if content is None:
            logger.error(f"行末のない行です: {line!r}")
            return None
        if not self._pattern.fullmatch(content):
            logger.error(f"不正な行です: {line!r}")
            return None
        return content.split(",")

    def decode(self, line: str) -> bool:
        """1 行を解析して車両状態を更新する。

        Returns:
            bool: 状態を更新した場合は ``True``。不正な行は破棄して ``False``。
        """
        logger.debug(f"受信した行: {line!r}")
        values = self.parse(line)
        if values is None:
            return False
        self.update_values(values)
        return True

    def update_values(self, values: List[str]):
        """フィールドのリストから状態を更新する。

        1 行分の更新が終わるまでロックを保持する。
        """
        with self.state.lock:
            for channel, handler in self._handlers:
                handler(values[channel])
            sensor_index = self.line_format.sensor_index
            if len(values) > sensor_index:
                self._process_distance(values[sensor_index])

    #
    # 各チャンネルの処理。整数に変換できない値はログを出して前回値を残す。
    #
    def _process_steering(self, v: str):
        value = parse_int(v, "steering")
        if value is None:
            return
        self.state.steering = convert_pwm_to_percent(value, self.steering_config)

    def _process_throttle(self, v: str):
        value = parse_int(v, "throttle")
        if value is None:
            return
        self.state.throttle = convert_pwm_to_percent(value, self.throttle_config)

    def _process_secondary_steering(self, v: str):
        value = parse_int(v, "secondary steering")
        if value is None:
            return
        self.state.secondary_steering = convert_pwm_to_percent(value, self.secondary_steering_config)

    def _process_secondary_throttle(self, v: str):
        value = parse_int(v, "secondary throttle")
        if value is None:
            return
        self.state.secondary_throttle = convert_pwm_to_percent(value, self.secondary_throttle_config)

    def _process_secondary_select(self, v: str):
        value = parse_int(v, "secondary rc")
        if value is None:
            return
        use_secondary = use_secondary_receiver(value, self.secondary_threshold)
        if use_secondary != self.state.use_secondary_rc:
            logger.info(f"チャンネル {self.channels.secondary_select} を値 {value} で更新: "
                        f"2 台目の受信機を使用 = {use_secondary}")
        self.state.use_secondary_rc = use_secondary

    def _process_throttle_feedback(self, v: str):
        value = parse_int(v, "throttle feedback")
        if value is None:
            return
        self.state.throttle_feedback = self.feedback_thresholds.value_of(value)

    def _process_record(self, v: str):
        value = parse_int(v, "record")
        if value is None:
            return
        enabled = is_record_enabled(value, self.record_threshold)
        if enabled != self.state.record_enabled:
            logger.info(f"チャンネル {self.channels.record} 'record' を値 {value} で更新: "
                        f"record = {enabled}")
        self.state.record_enabled = enabled

    def _process_drive_mode(self, v: str):
        value = parse_int(v, "drive-mode")
        if value is None:
            return
        mode = self.drive_mode_bands.classify(value)
        if mode is None:
            # 値なし
            return
        if mode != self.state.drive_mode:
            logger.info(f"チャンネル {self.channels.drive_mode} 'drive-mode' を値 {value} で更新: "
                        f"新しいモード = {mode.name}")
        self.state.drive_mode = mode

    def _process_distance(self, v: str):
        if v == "":
            return
        value = parse_int(v, "distance_cm")
        if value is None:
            return
        self.state.distance_cm = value


def get_line_decoder(cfg, state: VehicleState) -> LineDecoder:
    """設定から :class:`LineDecoder` を作成する。"""

    line_format = get_line_format(cfg.LINE_FORMAT)

    copilot_threshold = optional_int(cfg.DRIVE_MODE_COPILOT_THRESHOLD)
    if copilot_threshold is None:
        copilot_threshold = line_format.default_drive_mode_bands().copilot_threshold
    bands = DriveModeBands(
        pilot_threshold=int(cfg.DRIVE_MODE_PILOT_THRESHOLD),
        copilot_threshold=copilot_threshold)

    if cfg.THROTTLE_FEEDBACK_CONFIG:
        thresholds = ThresholdConfig.from_json(cfg.THROTTLE_FEEDBACK_CONFIG)
    else:
        thresholds = ThresholdConfig.default()

    def pwm(prefix):
        return PWMConfig(
            int(getattr(cfg, prefix + "_PWM_MIN")),
            int(getattr(cfg, prefix + "_PWM_MAX")),
            optional_int(getattr(cfg, prefix + "_PWM_MIDDLE")))

    decoder = LineDecoder(
        state,
        line_format=line_format,
        steering=pwm("STEERING"),
        throttle=pwm("THROTTLE"),
        secondary_steering=pwm("SECONDARY_STEERING"),
        secondary_throttle=pwm("SECONDARY_THROTTLE"),
        feedback_thresholds=thresholds,
        drive_mode_bands=bands,
        record_threshold=int(cfg.RECORD_THRESHOLD),
        secondary_threshold=int(cfg.SECONDARY_RC_THRESHOLD),
    )
    logger.info(f"行フォーマット {line_format.name}, 走行モード区間 {bands}")
    return decoder
