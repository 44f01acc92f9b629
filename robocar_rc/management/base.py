import argparse
import logging
import os
import shutil
import stat
import sys

from prettytable import PrettyTable
from pyfiglet import Figlet

import robocar_rc as rc
from robocar_rc.parts.arduino import ArduinoPart, get_arduino_part
from robocar_rc.parts.line_decoder import get_line_decoder
from robocar_rc.parts.publisher import get_mqtt_publisher
from robocar_rc.parts.serial_port import SerialPortError, get_serial_port
from robocar_rc.parts.threshold import ThresholdConfigError
from robocar_rc.parts.vehicle_state import StateSnapshot, VehicleState

PACKAGE_PATH = os.path.dirname(os.path.dirname(os.path.realpath(__file__)))
TEMPLATES_PATH = os.path.join(PACKAGE_PATH, 'templates')
HELP_CONFIG = '使用する設定ファイルの場所。デフォルト: パッケージ同梱の設定'
logger = logging.getLogger(__name__)


def make_dir(path):
    real_path = os.path.expanduser(path)
    print('ディレクトリを作成中 ', real_path)
    if not os.path.exists(real_path):
        os.makedirs(real_path)
    return real_path


def load_config(config_path, myconfig='myconfig.py'):
    """指定されたパスから設定を読み込む。

    Args:
        config_path: 読み込む設定ファイルのパス。``None`` の場合は既定の設定。
        myconfig: 読み込む追加設定ファイル名。

    Returns:
        読み込んだ設定オブジェクト。失敗した場合は ``None``。
    """
    if config_path is not None:
        conf = os.path.expanduser(config_path)
        if not os.path.exists(conf):
            logger.error(
                f"設定ファイルが見つかりません: {conf}. --config を使用して場所を指定してください。")
            return None
    else:
        conf = None

    try:
        cfg = rc.load_config(conf, myconfig)
    except Exception as e:
        logger.error(f"{conf} の読み込み中に例外が発生しました: {e}")
        return None

    return cfg


def add_config_arguments(parser):
    parser.add_argument('--config', default=None, help=HELP_CONFIG)
    parser.add_argument('--myconfig', default='myconfig.py', help='上書きに使う個人用設定ファイル名')
    parser.add_argument('--device', default=None, help='シリアルデバイス。例: /dev/serial0')
    parser.add_argument('--baud', type=int, default=None, help='シリアルのボーレート')
    parser.add_argument('--format', dest='line_format', default=None, help='行フォーマット (legacy|extended)')
    parser.add_argument('--debug', action='store_true', help='受信した生の値をログに表示する')


def apply_arguments(cfg, args):
    """コマンドライン引数で設定を上書きする。"""
    overrides = {
        'SERIAL_DEVICE': args.device,
        'SERIAL_BAUD': args.baud,
        'LINE_FORMAT': args.line_format,
        'MQTT_BROKER': getattr(args, 'broker', None),
        'MQTT_TOPIC_BASE': getattr(args, 'topic_base', None),
        'MQTT_PUB_FREQUENCY': getattr(args, 'pub_frequency', None),
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(cfg, key, value)
    if args.debug:
        logging.getLogger('robocar_rc').setLevel(logging.DEBUG)
    return cfg


class BaseCommand(object):
    pass


class CreateConfig(BaseCommand):

    def parse_args(self, args):
        parser = argparse.ArgumentParser(prog='createcfg', usage='%(prog)s [options]')
        parser.add_argument('--path', default=None, help='設定フォルダーを作成する場所')
        parser.add_argument('--overwrite', action='store_true', help='既存のファイルを置き換えるか')
        parsed_args = parser.parse_args(args)
        return parsed_args

    def run(self, args):
        args = self.parse_args(args)
        self.create_config(path=args.path, overwrite=args.overwrite)

    def create_config(self, path, overwrite=False):
        """ブリッジを動かすための設定ファイルと起動スクリプトをコピーする。"""
        path = path or '~/mycar'
        print(f"設定フォルダーを作成します: {path}")
        path = make_dir(path)

        app_template_path = os.path.join(TEMPLATES_PATH, 'rc_bridge.py')
        config_template_path = os.path.join(TEMPLATES_PATH, 'cfg_rc_bridge.py')
        app_path = os.path.join(path, 'manage.py')
        config_path = os.path.join(path, 'config.py')

        if os.path.exists(app_path) and not overwrite:
            print('起動スクリプトは既に存在します。削除してから createcfg を再実行してください。')
        else:
            print("起動スクリプトをコピーします")
            shutil.copyfile(app_template_path, app_path)
            os.chmod(app_path, stat.S_IRWXU)

        if os.path.exists(config_path) and not overwrite:
            print('設定ファイルは既に存在します。削除してから createcfg を再実行してください。')
        else:
            print("設定のデフォルトをコピーします。起動する前に PWM の範囲を調整してください。")
            shutil.copyfile(config_template_path, config_path)

        print("完了しました。")
        return path


class RunBridge(BaseCommand):
    """シリアルの RC 値を MQTT へ送信し続ける。"""

    def parse_args(self, args):
        parser = argparse.ArgumentParser(prog='run', usage='%(prog)s [options]')
        add_config_arguments(parser)
        parser.add_argument('--broker', default=None, help='MQTT ブローカーのホスト')
        parser.add_argument('--topic-base', dest='topic_base', default=None,
                            help='MQTT トピックの接頭辞')
        parser.add_argument('--pub-frequency', dest='pub_frequency', type=float, default=None,
                            help='1 秒あたりの送信回数')
        parsed_args = parser.parse_args(args)
        return parsed_args

    def run(self, args):
        args = self.parse_args(args)
        cfg = load_config(args.config, args.myconfig)
        if cfg is None:
            sys.exit(1)
        apply_arguments(cfg, args)

        mqtt = get_mqtt_publisher(cfg)
        try:
            mqtt.start()
        except OSError as e:
            logger.error(f"MQTT ブローカー {cfg.MQTT_BROKER} に接続できません: {e}")
            sys.exit(1)

        try:
            part = get_arduino_part(cfg, mqtt.publish)
        except (SerialPortError, ThresholdConfigError, ValueError) as e:
            logger.error(f"起動できません: {e}")
            mqtt.shutdown()
            sys.exit(1)

        try:
            part.start()
        except KeyboardInterrupt:
            print("\nキーボード割り込みを受信しました。終了します。")
        finally:
            part.shutdown()
            mqtt.shutdown()


class TablePrinter:
    """スナップショットを PrettyTable で表示する。``StatePublisher`` の代わりに使う。"""

    def __init__(self, out=None):
        self.out = out or sys.stdout

    def table(self, snapshot: StateSnapshot) -> PrettyTable:
        pt = PrettyTable()
        pt.field_names = ["channel", "value"]
        pt.align["channel"] = "l"
        pt.add_row(["steering", "%.2f" % snapshot.steering])
        pt.add_row(["throttle", "%.2f" % snapshot.throttle])
        pt.add_row(["throttle_feedback", "%.3f" % snapshot.throttle_feedback])
        pt.add_row(["drive_mode", snapshot.drive_mode.name])
        pt.add_row(["record", snapshot.record_enabled])
        pt.add_row(["secondary_rc", snapshot.use_secondary_rc])
        pt.add_row(["distance_cm", "-" if snapshot.distance_cm is None else snapshot.distance_cm])
        return pt

    def publish_snapshot(self, snapshot: StateSnapshot):
        print(self.table(snapshot), file=self.out)


class Monitor(BaseCommand):
    """MQTT を使わずにデコードした値を表示する。PWM 範囲の調整に使う。"""

    def parse_args(self, args):
        parser = argparse.ArgumentParser(prog='monitor', usage='%(prog)s [options]')
        add_config_arguments(parser)
        parser.add_argument('--rate', type=float, default=2.0, help='1 秒あたりの表示回数')
        parsed_args = parser.parse_args(args)
        return parsed_args

    def run(self, args):
        args = self.parse_args(args)
        cfg = load_config(args.config, args.myconfig)
        if cfg is None:
            sys.exit(1)
        apply_arguments(cfg, args)

        try:
            decoder = get_line_decoder(cfg, VehicleState())
            part = ArduinoPart(get_serial_port(cfg), decoder, TablePrinter(), pub_frequency=args.rate)
            part.serial.start()
        except (SerialPortError, ThresholdConfigError, ValueError) as e:
            logger.error(f"起動できません: {e}")
            sys.exit(1)

        try:
            part.start()
        except KeyboardInterrupt:
            print("\nキーボード割り込みを受信しました。終了します。")
        finally:
            part.shutdown()


def execute_from_command_line():
    """"robocar-rc" コマンドから呼び出される関数。"""
    commands = {
        'createcfg': CreateConfig,
        'run': RunBridge,
        'monitor': Monitor,
    }

    args = sys.argv[:]

    print(Figlet(font="speed").renderText("robocar-rc"))
    print(f"robocar-rc v{rc.__version__} を使用しています...")

    if len(args) > 1 and args[1] in commands.keys():
        command = commands[args[1]]
        c = command()
        c.run(args[2:])
    else:
        rc.utils.eprint('使用方法: 利用可能なコマンドは次の通りです:')
        rc.utils.eprint(list(commands.keys()))


if __name__ == "__main__":
    execute_from_command_line()
