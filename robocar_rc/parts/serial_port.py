import logging
from typing import Tuple

import serial
import serial.tools.list_ports

logger = logging.getLogger(__name__)


class SerialPortError(Exception):
    pass


class SerialPort:
    """シリアルポートの接続、読み取り、書き込みを行うラッパー。

    生の pyserial API の代わりに使用してください。例外を捕捉してバイト列と
    文字列の相互変換を自動で行い、テスト時にモックしやすいよう抽象化します。
    ``port`` にはデバイスのパスのほか ``loop://`` などの pyserial の URL も
    指定できます。
    """
    def __init__(
        self,
        port: str = '/dev/serial0',
        baudrate: int = 115200,
        bits: int = 8,
        parity: str = 'N',
        stop_bits: int = 1,
        charset: str = 'ascii',
        timeout: float = 1.0,
    ):
        """インスタンスを初期化する。

        Args:
            port: 接続するシリアルポート。
            baudrate: ボーレート。
            bits: データビット数。
            parity: パリティビット。
            stop_bits: ストップビット数。
            charset: 文字列変換に使用する文字セット。
            timeout: 読み取りタイムアウト秒数。``None`` で行末までブロックする。
        """
        self.port = port
        self.baudrate = baudrate
        self.bits = bits
        self.parity = parity
        self.stop_bits = stop_bits
        self.charset = charset
        self.timeout = timeout
        self.ser = None
        # タイムアウトで途中まで読んだ行
        self._partial = b""

    def start(self):
        """シリアルポートを開く。

        Returns:
            SerialPort: 自身のインスタンス。

        Raises:
            SerialPortError: ポートを開けない場合。入力がなければ動作できないため
                呼び出し側は起動を中止する。
        """
        for item in serial.tools.list_ports.comports():
            logger.debug(item)  # すべてのシリアルポートを表示
        try:
            self.ser = serial.serial_for_url(
                self.port,
                baudrate=self.baudrate,
                bytesize=self.bits,
                parity=self.parity,
                stopbits=self.stop_bits,
                timeout=self.timeout,
            )
        except (serial.SerialException, ValueError) as e:
            raise SerialPortError(f"シリアルポート {self.port} を開けません: {e}") from e
        logger.info(f"シリアルポートを開きました {self.port} ({self.baudrate} baud)")
        return self

    def stop(self):
        """シリアルポートを閉じる。

        Returns:
            SerialPort: 自身のインスタンス。
        """
        if self.ser is not None:
            sp = self.ser
            self.ser = None
            self._partial = b""
            sp.close()
        return self

    @property
    def is_open(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def readln(self) -> Tuple[bool, str]:
        """1 行読み取る。

        行末が読み取れるかタイムアウトするまでブロックし、行末文字も結果に
        含めます。タイムアウトで途中までしか読めなかった場合は、残りが届くまで
        内部に保持して空文字列を返します。

        Returns:
            Tuple[bool, str]: ストリームが継続しているかどうかと、取得した行。
            タイムアウトやデコードできない行は ``(True, "")``、ポートが閉じられた
            場合やストリームが終了した場合は ``(False, "")`` を返します。
        """
        if not self.is_open:
            return (False, "")

        try:
            buffer = self.ser.readline()
        except (serial.SerialException, TypeError, AttributeError) as e:
            # 別スレッドから閉じられた場合も含む
            logger.warning(f"シリアルポートから行を読み取れません: {e}")
            return (False, "")

        if not buffer.endswith(b"\n"):
            if self.timeout is None:
                # ブロッキング読み取りで行末がないのはストリームの終端
                if buffer or self._partial:
                    logger.warning("行末のない行を破棄しました")
                self._partial = b""
                return (False, "")
            self._partial += buffer
            return (True, "")

        buffer = self._partial + buffer
        self._partial = b""
        try:
            return (True, buffer.decode(self.charset))
        except UnicodeDecodeError:
            # 初回の読み取りでは枠組みが壊れたデータが含まれることがある
            logger.warning("シリアルポートの行をUnicodeデコードできませんでした")
            return (True, "")


def get_serial_port(cfg) -> SerialPort:
    timeout = cfg.SERIAL_TIMEOUT
    return SerialPort(
        port=cfg.SERIAL_DEVICE,
        baudrate=int(cfg.SERIAL_BAUD),
        timeout=None if timeout is None or timeout == "" else float(timeout),
    )
