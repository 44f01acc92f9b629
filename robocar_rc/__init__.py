import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("robocar-rc")
except PackageNotFoundError:
    # ソースツリーから直接実行している場合
    __version__ = "0.0.0"

logging.basicConfig(level=os.environ.get("LOGLEVEL", "INFO").upper())

if sys.version_info < (3, 8):
    msg = f"robocar-rc は Python 3.8 以上が必要です。現在のバージョンは {sys.version} です"
    raise ValueError(msg)

from . import config, utils
from .config import load_config
