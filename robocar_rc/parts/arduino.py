#!/usr/bin/env python3
"""
Arduino でサンプリングした RC 受信機の値をシリアルから読み取り、MQTT へ
送信するパーツ。

2 つのループが同時に動作する。

- 読み取りループ: シリアルから 1 行ずつ読み取り、:class:`LineDecoder` で
  :class:`VehicleState` を更新する。ストリームが終了すると正常終了する。
- 送信ループ: ``pub_frequency`` 回/秒で最新の状態を送信する。``shutdown()``
  で停止する。

送信ループは常に最新のスナップショットだけを送るため、入力の速度と
送信の速度は独立している。
"""
import logging
import threading
import time

from robocar_rc.parts.channel import DriveMode
from robocar_rc.parts.line_decoder import LineDecoder, get_line_decoder
from robocar_rc.parts.messages import get_encoder
from robocar_rc.parts.publisher import StatePublisher, get_topics
from robocar_rc.parts.serial_port import SerialPort, get_serial_port
from robocar_rc.parts.vehicle_state import VehicleState

logger = logging.getLogger(__name__)

# donkeycar の走行モード名
DONKEY_MODES = {
    DriveMode.INVALID: 'user',
    DriveMode.USER: 'user',
    DriveMode.COPILOT: 'local_angle',
    DriveMode.PILOT: 'local',
}


class ArduinoPart:
    """シリアルの読み取りと MQTT への送信を行うパーツ。

    Args:
        serial_port: ``readln()`` と ``stop()`` を持つシリアルポート。
        decoder: 行を解析するデコーダ。車両状態は ``decoder.state``。
        publisher: スナップショットを送信する :class:`StatePublisher`。
        pub_frequency: 1 秒あたりの送信回数。
    """

    def __init__(self, serial_port: SerialPort, decoder: LineDecoder,
                 publisher: StatePublisher, pub_frequency: float = 25.0):
        if pub_frequency <= 0:
            raise ValueError(f"送信頻度は 0 より大きくなければなりません: {pub_frequency}")
        self.serial = serial_port
        self.decoder = decoder
        self.state = decoder.state
        self.publisher = publisher
        self.pub_frequency = pub_frequency
        self.running = True
        self._stop_event = threading.Event()
        self._publish_thread = None

    def start(self):
        """送信ループを開始し、ストリームが終了するまで読み取りを続ける。"""
        logger.info("Arduino パーツを開始します")
        self.start_publishing()
        self.update()

    def start_publishing(self):
        if self._publish_thread is None:
            self._publish_thread = threading.Thread(
                target=self.publish_loop, name="arduino-publisher", daemon=True)
            self._publish_thread.start()
        return self._publish_thread

    def update(self):
        """読み取りループ。ストリームの終了か ``shutdown()`` まで戻らない。"""
        while self.running:
            ok, line = self.serial.readln()
            if not ok:
                if self.running:
                    logger.info("リモート接続が閉じられました")
                break
            if line:
                self.decoder.decode(line)
        logger.debug("読み取りループを終了します")

    def publish_loop(self):
        """``shutdown()`` が呼ばれるまで一定周期で状態を送信する。"""
        period = 1.0 / self.pub_frequency
        logger.info(f"{self.pub_frequency} 回/秒で送信を開始します")
        # 送信時間を含めて周期を保つ
        next_tick = time.monotonic() + period
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self.publish_values()
            next_tick += period
            now = time.monotonic()
            if next_tick < now:
                # 遅れた周期は飛ばす
                next_tick = now + period
        logger.debug("送信ループを終了します")

    def publish_values(self):
        # ロックはスナップショットの取得中だけ保持する
        snapshot = self.state.snapshot()
        self.publisher.publish_snapshot(snapshot)

    def run(self):
        return self.run_threaded()

    def run_threaded(self):
        """最新のステアリング、スロットル、走行モード、録画フラグを返す。"""
        snapshot = self.state.snapshot()
        return (snapshot.steering, snapshot.throttle,
                DONKEY_MODES[snapshot.drive_mode], snapshot.record_enabled)

    def shutdown(self):
        """送信ループを停止し、シリアルポートを閉じる。"""
        if not self.running and self._stop_event.is_set():
            return
        logger.info("Arduino パーツを停止します")
        self.running = False
        self._stop_event.set()
        thread = self._publish_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._publish_thread = None
        self.serial.stop()


def get_arduino_part(cfg, publish) -> ArduinoPart:
    """設定から :class:`ArduinoPart` を作成する。

    Args:
        cfg: 設定オブジェクト。
        publish: ``publish(topic, payload)`` 形式の送信関数。
    """
    state = VehicleState()
    decoder = get_line_decoder(cfg, state)
    publisher = StatePublisher(
        publish,
        get_topics(cfg),
        encoder=get_encoder(cfg.PAYLOAD_FORMAT),
        invert_record=bool(cfg.SWITCH_RECORD_INVERTED),
    )
    part = ArduinoPart(get_serial_port(cfg), decoder, publisher,
                       pub_frequency=float(cfg.MQTT_PUB_FREQUENCY))
    part.serial.start()
    return part
