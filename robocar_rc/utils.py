"""
utils.py

Functions that don't fit anywhere else.

"""

import logging
import sys

logger = logging.getLogger(__name__)


def clamp(n, min, max):
    if min > max:
        return clamp(n, max, min)

    if n < min:
        return min
    if n > max:
        return max
    return n


def parse_int(value, name=""):
    """整数へ変換する。変換できない場合はログを出力して ``None`` を返す。"""
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.error(f"{name} の値が整数ではありません: {value!r}")
        return None


def optional_int(value):
    """``None`` と空文字列はそのまま ``None`` とし、それ以外を整数にする。"""
    if value is None or value == "":
        return None
    return int(value)


def eprint(*args, **kwargs):
    print(*args, file=sys.stderr, **kwargs)
