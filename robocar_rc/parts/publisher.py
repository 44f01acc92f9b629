# -*- coding: utf-8 -*-
"""車両状態を MQTT のトピックへ送信する。

``StatePublisher`` は状態のスナップショットをメッセージに変換し、注入された
``publish(topic, payload)`` 関数を呼び出す。``MqttPublisher`` は paho-mqtt の
クライアントを使った ``publish`` の実装。
"""
from collections import namedtuple
import logging
from typing import Callable

from paho.mqtt.client import Client as MQTTClient
from paho.mqtt.client import CallbackAPIVersion, MQTT_ERR_SUCCESS

from robocar_rc.parts import messages
from robocar_rc.parts.vehicle_state import StateSnapshot

logger = logging.getLogger(__name__)

PublishFunc = Callable[[str, bytes], None]

Topics = namedtuple(
    "Topics",
    ["throttle", "steering", "drive_mode", "switch_record", "throttle_feedback", "distance"],
    defaults=["", "", "", "", "", ""])


def topics_from_base(base: str, distance: bool = False) -> Topics:
    """``<base>/throttle/target`` などのトピックを作成する。"""
    prefix = base.rstrip("/")
    return Topics(
        throttle=f"{prefix}/throttle/target",
        steering=f"{prefix}/steering",
        drive_mode=f"{prefix}/drive_mode",
        switch_record=f"{prefix}/switch_record",
        throttle_feedback=f"{prefix}/throttle/feedback",
        distance=f"{prefix}/distance_cm" if distance else "",
    )


def get_topics(cfg) -> Topics:
    """設定からトピックを決める。``None`` のトピックは ``MQTT_TOPIC_BASE`` から作る。"""
    base = topics_from_base(cfg.MQTT_TOPIC_BASE, distance=True)

    def topic(key, default):
        value = getattr(cfg, key)
        return default if value is None else value

    return Topics(
        throttle=topic("THROTTLE_TOPIC", base.throttle),
        steering=topic("STEERING_TOPIC", base.steering),
        drive_mode=topic("DRIVE_MODE_TOPIC", base.drive_mode),
        switch_record=topic("SWITCH_RECORD_TOPIC", base.switch_record),
        throttle_feedback=topic("THROTTLE_FEEDBACK_TOPIC", base.throttle_feedback),
        distance=topic("DISTANCE_TOPIC", base.distance),
    )


class StatePublisher:
    """スナップショットの各チャンネルをトピックへ送信する。

    Args:
        publish: ``publish(topic, payload)`` 形式の送信関数。
        topics: 送信先トピック。空文字列のトピックは送信しない。
        encoder: ペイロードのエンコーダ。
        invert_record: 録画フラグを反転して送信するかどうか。
    """

    def __init__(self, publish: PublishFunc, topics: Topics, encoder=None, invert_record=False):
        self.publish = publish
        self.topics = topics
        self.encoder = encoder or messages.JsonEncoder()
        self.invert_record = invert_record

    def messages_for(self, snapshot: StateSnapshot):
        """送信するトピックとメッセージの組を返す。"""
        record = not snapshot.record_enabled if self.invert_record else snapshot.record_enabled
        result = [
            (self.topics.throttle, messages.throttle_message(snapshot.throttle)),
            (self.topics.throttle_feedback, messages.throttle_message(snapshot.throttle_feedback)),
            (self.topics.steering, messages.steering_message(snapshot.steering)),
            (self.topics.drive_mode, messages.drive_mode_message(snapshot.drive_mode)),
            (self.topics.switch_record, messages.switch_record_message(record)),
        ]
        if snapshot.distance_cm is not None:
            result.append((self.topics.distance, messages.distance_message(snapshot.distance_cm)))
        return [(topic, message) for topic, message in result if topic]

    def publish_snapshot(self, snapshot: StateSnapshot):
        for topic, message in self.messages_for(snapshot):
            try:
                payload = self.encoder.encode(message)
            except (TypeError, ValueError) as e:
                logger.error(f"トピック {topic} のメッセージを変換できません: {e}")
                continue
            logger.debug(f"{topic}: {payload!r}")
            self.publish(topic, payload)


class MqttPublisher:
    """paho-mqtt のクライアントでメッセージを送信する。"""

    def __init__(
        self,
        broker: str = "localhost",
        port: int = 1883,
        username: str = "",
        password: str = "",
        client_id: str = "robocar-arduino",
        qos: int = 0,
        retain: bool = False,
        client: MQTTClient = None,
    ):
        self.broker = broker
        self.port = port
        self.qos = qos
        self.retain = retain
        if client is None:
            client = MQTTClient(CallbackAPIVersion.VERSION2, client_id=client_id)
            if username:
                client.username_pw_set(username, password or None)
        self._mqtt_client = client

    def start(self):
        """ブローカーに接続し、ネットワークループを開始する。"""
        logger.info(f"MQTT ブローカー {self.broker}:{self.port} に接続します")
        self._mqtt_client.connect(self.broker, self.port)
        self._mqtt_client.loop_start()
        return self

    def publish(self, topic: str, payload: bytes):
        info = self._mqtt_client.publish(topic, payload, qos=self.qos, retain=self.retain)
        if info.rc != MQTT_ERR_SUCCESS:
            logger.error(f"トピック {topic} の送信エラー: rc={info.rc}")

    def shutdown(self):
        logger.debug("MQTT クライアントを停止します")
        self._mqtt_client.loop_stop()
        self._mqtt_client.disconnect()


def get_mqtt_publisher(cfg) -> MqttPublisher:
    return MqttPublisher(
        broker=cfg.MQTT_BROKER,
        port=int(cfg.MQTT_PORT),
        username=cfg.MQTT_USERNAME,
        password=cfg.MQTT_PASSWORD,
        client_id=cfg.MQTT_CLIENT_ID,
        qos=int(cfg.MQTT_QOS),
        retain=bool(cfg.MQTT_RETAIN),
    )
