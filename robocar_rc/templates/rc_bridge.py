#!/usr/bin/env python3
"""
RC 受信機の値を Arduino から読み取り MQTT へ送信するスクリプト。

同じディレクトリの config.py と myconfig.py を読み込む。

Usage:
    manage.py (drive) [--myconfig=<filename>] [--debug]

Options:
    -h --help               この画面を表示する。
    --myconfig=<filename>   上書きに使う個人用設定ファイル名 [default: myconfig.py]
    --debug                 受信した生の値をログに表示する。
"""
import logging
import os

from docopt import docopt

import robocar_rc as rc
from robocar_rc.parts.arduino import get_arduino_part
from robocar_rc.parts.publisher import get_mqtt_publisher


def drive(cfg):
    """MQTT に接続し、シリアルのストリームが終了するまで送信を続ける。

    Args:
        cfg: 設定オブジェクト。

    Returns:
        None
    """
    mqtt = get_mqtt_publisher(cfg).start()
    part = None
    try:
        part = get_arduino_part(cfg, mqtt.publish)
        part.start()
    except KeyboardInterrupt:
        pass
    finally:
        if part is not None:
            part.shutdown()
        mqtt.shutdown()


if __name__ == '__main__':
    args = docopt(__doc__)
    config_path = os.path.join(os.path.dirname(os.path.realpath(__file__)), 'config.py')
    cfg = rc.load_config(config_path, myconfig=args['--myconfig'])
    if args['--debug']:
        logging.getLogger('robocar_rc').setLevel(logging.DEBUG)

    if args['drive']:
        drive(cfg)
