"""RC ブリッジ設定

このファイルは ``robocar-rc run`` または ``rc_bridge.py`` によって読み込まれ、
シリアル入力の解釈と MQTT への送信方法を決めます。
同じディレクトリに ``myconfig.py`` を置くと値を上書きできます。
大文字の名前はすべて同名の環境変数でも上書きできます。

EXAMPLE
-----------
import robocar_rc as rc
cfg = rc.load_config(config_path='~/mycar/config.py')
print(cfg.SERIAL_DEVICE)

"""

# シリアル
SERIAL_DEVICE = "/dev/serial0"      # Arduino が接続されたシリアルポート。'loop://' などの URL も指定可能
SERIAL_BAUD = 115200
SERIAL_TIMEOUT = 1.0                # 読み取りタイムアウト(秒)。None でブロッキング

# 行フォーマット
LINE_FORMAT = "extended"            # (legacy|extended) legacy は 6 チャンネル、extended は 9 チャンネル

# MQTT
MQTT_BROKER = "localhost"
MQTT_PORT = 1883
MQTT_USERNAME = ""
MQTT_PASSWORD = ""
MQTT_CLIENT_ID = "robocar-arduino"
MQTT_QOS = 0
MQTT_RETAIN = False
MQTT_PUB_FREQUENCY = 25.0           # 1 秒あたりの送信回数。0 より大きい値を指定

# トピック。空文字列のトピックは送信しません
MQTT_TOPIC_BASE = "car/part/arduino"
THROTTLE_TOPIC = None               # None の場合は MQTT_TOPIC_BASE + '/throttle/target'
STEERING_TOPIC = None               # None の場合は MQTT_TOPIC_BASE + '/steering'
DRIVE_MODE_TOPIC = None             # None の場合は MQTT_TOPIC_BASE + '/drive_mode'
SWITCH_RECORD_TOPIC = None          # None の場合は MQTT_TOPIC_BASE + '/switch_record'
THROTTLE_FEEDBACK_TOPIC = None      # None の場合は MQTT_TOPIC_BASE + '/throttle/feedback'
DISTANCE_TOPIC = ""                 # 距離センサーを接続した場合に指定

# ペイロード
PAYLOAD_FORMAT = "json"             # (text|json)
SWITCH_RECORD_INVERTED = False      # True の場合は録画フラグを反転して送信する

# ステアリング PWM。MIDDLE が None の場合は MIN と MAX の中間
STEERING_PWM_MIN = 960
STEERING_PWM_MAX = 1980
STEERING_PWM_MIDDLE = None

# スロットル PWM
THROTTLE_PWM_MIN = 972
THROTTLE_PWM_MAX = 1954
THROTTLE_PWM_MIDDLE = None

# 2 台目の受信機 (extended フォーマットのチャンネル 7, 8)
SECONDARY_STEERING_PWM_MIN = 972
SECONDARY_STEERING_PWM_MAX = 1954
SECONDARY_STEERING_PWM_MIDDLE = None
SECONDARY_THROTTLE_PWM_MIN = 972
SECONDARY_THROTTLE_PWM_MAX = 1954
SECONDARY_THROTTLE_PWM_MIDDLE = None
SECONDARY_RC_THRESHOLD = 1900       # チャンネル 3 がこの値を超えると 2 台目の受信機を使う

# 走行モード
DRIVE_MODE_PILOT_THRESHOLD = 1800   # この値を超えると PILOT
DRIVE_MODE_COPILOT_THRESHOLD = None # None の場合は LINE_FORMAT の既定値 (legacy: なし, extended: 1200)

# 録画
RECORD_THRESHOLD = 1800             # この値未満で録画を有効にする

# スロットルフィードバック
THROTTLE_FEEDBACK_CONFIG = ""       # しきい値テーブルの JSON ファイル。空の場合は既定のテーブル
