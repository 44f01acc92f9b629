"""
MQTT に送信するメッセージとペイロードのエンコーダ。

メッセージはチャンネルごとの辞書で表し、エンコーダがバイト列へ変換する。
同じ状態からは常に同じバイト列が生成される。
"""
import json

from robocar_rc.parts.channel import DriveMode


def throttle_message(throttle: float) -> dict:
    return {"throttle": float(throttle), "confidence": 1.0}


def steering_message(steering: float) -> dict:
    return {"steering": float(steering), "confidence": 1.0}


def drive_mode_message(drive_mode: DriveMode) -> dict:
    return {"drive_mode": DriveMode(drive_mode).name}


def switch_record_message(enabled: bool) -> dict:
    return {"enabled": bool(enabled)}


def distance_message(distance_cm: int) -> dict:
    return {"distance_cm": int(distance_cm)}


class TextEncoder:
    """主な値だけをテキストで送信する。

    数値は ``repr`` 形式、真偽値は ``true``/``false``、走行モードは名前。
    """
    name = "text"

    # メッセージ種別ごとに送信する値のキー
    VALUE_KEYS = ("throttle", "steering", "drive_mode", "enabled", "distance_cm")

    def encode(self, message: dict) -> bytes:
        for key in self.VALUE_KEYS:
            if key in message:
                value = message[key]
                break
        else:
            raise ValueError(f"テキストに変換できるキーがありません: {message}")
        if isinstance(value, bool):
            value = "true" if value else "false"
        return str(value).encode("ascii")


class JsonEncoder:
    """メッセージ全体を JSON で送信する。"""
    name = "json"

    def encode(self, message: dict) -> bytes:
        return json.dumps(message, sort_keys=True, separators=(",", ":")).encode("utf-8")


ENCODERS = {
    TextEncoder.name: TextEncoder,
    JsonEncoder.name: JsonEncoder,
}


def get_encoder(name: str):
    try:
        return ENCODERS[name]()
    except KeyError:
        raise ValueError(
            f"未知のペイロード形式 '{name}' です。利用可能: {', '.join(ENCODERS)}") from None
