"""
非線形センサー (スロットルフィードバック) のしきい値テーブル。

パルス幅は回転が速くなるほど短くなるため、生の値から割合への変換は線形では
ない。テーブルは生の値の降順と、それに対応する割合の昇順で構成する。
"""
import json
import logging
from typing import List

logger = logging.getLogger(__name__)


class ThresholdConfigError(Exception):
    pass


class ThresholdConfig:
    """生のパルス幅を ``0.0`` ～ ``1.0`` の割合へ変換するテーブル。

    Args:
        threshold_steps: 各エントリの割合。昇順。
        min_valid: これより小さい値はノイズとして ``0.0`` を返す。
        data: 各エントリの生のパルス幅。降順。
    """

    def __init__(self, threshold_steps: List[float], min_valid: int, data: List[int]):
        if len(threshold_steps) != len(data):
            raise ValueError(
                f"threshold_steps ({len(threshold_steps)}) と data ({len(data)}) の長さが一致しません")
        if not data:
            raise ValueError("しきい値テーブルが空です")
        if any(a <= b for a, b in zip(data, data[1:])):
            raise ValueError(f"data は降順でなければなりません: {data}")
        if any(a > b for a, b in zip(threshold_steps, threshold_steps[1:])):
            raise ValueError(f"threshold_steps は昇順でなければなりません: {threshold_steps}")
        self.threshold_steps = list(threshold_steps)
        self.min_valid = min_valid
        self.data = list(data)

    @classmethod
    def default(cls) -> "ThresholdConfig":
        return cls(
            threshold_steps=[0.07, 0.08, 0.09, 0.1, 0.125, 0.15, 0.2, 0.25, 0.3,
                             0.35, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
            min_valid=500,
            data=[8700, 4800, 3500, 2550, 1850, 1387, 992, 840, 750, 700, 655,
                  620, 590, 570, 553, 549, 548],
        )

    @classmethod
    def from_json(cls, filename: str) -> "ThresholdConfig":
        """JSON ファイルからテーブルを読み込む。

        ファイルは ``threshold_steps``, ``min_valid``, ``data`` の 3 つのキーを持つ。

        Raises:
            ThresholdConfigError: ファイルを読めない、または内容が不正な場合。
        """
        try:
            with open(filename, "r") as f:
                content = json.load(f)
        except OSError as e:
            raise ThresholdConfigError(f"{filename} を読み込めません: {e}") from e
        except json.JSONDecodeError as e:
            raise ThresholdConfigError(f"{filename} の JSON を解析できません: {e}") from e

        try:
            tc = cls(
                threshold_steps=[float(v) for v in content["threshold_steps"]],
                min_valid=int(content["min_valid"]),
                data=[int(v) for v in content["data"]],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ThresholdConfigError(f"{filename} のしきい値テーブルが不正です: {e}") from e
        logger.info(f"しきい値テーブルを {filename} から読み込みました ({len(tc.data)} エントリ)")
        return tc

    def to_dict(self) -> dict:
        return {
            "threshold_steps": self.threshold_steps,
            "min_valid": self.min_valid,
            "data": self.data,
        }

    def value_of(self, pwm: int) -> float:
        """パルス幅に対応する割合を返す。

        2 つのエントリの間の値は線形補間ではなく、上側のエントリの割合から
        次のエントリとの差の半分だけずらした値になる。既存のキャリブレーション
        データとの互換性のためこの計算を変えないこと。
        """
        data = self.data
        steps = self.threshold_steps
        if pwm < self.min_valid or pwm > data[0]:
            return 0.0
        if pwm == data[0]:
            return steps[0]
        if pwm < data[-1]:
            return 1.0

        idx = 0
        # 最初のエントリは確認済み
        for i in range(1, len(steps)):
            if pwm == data[i]:
                return steps[i]
            if pwm > data[i]:
                idx = i - 1
                break

        return steps[idx] - (steps[idx] - steps[idx + 1]) / 2.0

    def __eq__(self, other):
        if not isinstance(other, ThresholdConfig):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"ThresholdConfig({self.to_dict()})"
