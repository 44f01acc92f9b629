# -*- coding: utf-8 -*-
"""
Python ファイルと環境変数から設定を読み込む。

設定ファイルの大文字の名前だけが設定値として扱われる。
"""

import os
import types
from logging import getLogger

logger = getLogger(__name__)

PACKAGE_PATH = os.path.dirname(os.path.realpath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(PACKAGE_PATH, "templates", "cfg_rc_bridge.py")

_TRUE_VALUES = ("1", "true", "yes", "on")
_NONE_VALUES = ("", "none")


class Config:
    def from_pyfile(self, filename):
        d = types.ModuleType("config")
        d.__file__ = filename
        try:
            with open(filename, mode="rb") as config_file:
                exec(compile(config_file.read(), filename, "exec"), d.__dict__)
        except IOError as e:
            e.strerror = "設定ファイルを読み込めません (%s)" % e.strerror
            raise
        self.from_object(d)
        return True

    def from_object(self, obj):
        for key in dir(obj):
            if key.isupper():
                setattr(self, key, getattr(obj, key))

    def from_env(self, environ=None):
        """既に定義されているキーを同名の環境変数で上書きする。

        値は既定値の型に合わせて変換する。数値のキーに空文字列か ``none`` を
        指定すると ``None`` になる。既定値が ``None`` の場合は文字列のまま設定する。

        Returns:
            list[str]: 上書きしたキーのリスト。
        """
        environ = os.environ if environ is None else environ
        updated = []
        for key in dir(self):
            if not key.isupper() or key not in environ:
                continue
            raw = environ[key]
            current = getattr(self, key)
            if isinstance(current, bool):
                value = raw.strip().lower() in _TRUE_VALUES
            elif isinstance(current, (int, float)) and raw.strip().lower() in _NONE_VALUES:
                value = None
            elif isinstance(current, int):
                value = int(raw)
            elif isinstance(current, float):
                value = float(raw)
            else:
                value = raw
            setattr(self, key, value)
            updated.append(key)
        if updated:
            logger.info(f"環境変数から設定を上書きしました: {', '.join(updated)}")
        return updated

    def __str__(self):
        result = []
        for key in dir(self):
            if key.isupper():
                result.append((key, getattr(self, key)))
        return str(result)

    def show(self):
        for attr in dir(self):
            if attr.isupper():
                print(attr, ":", getattr(self, attr))


def load_config(config_path=None, myconfig="myconfig.py", environ=None):
    """設定ファイルを読み込み、個人用設定と環境変数で上書きする。

    Args:
        config_path: 設定ファイルのパス。``None`` の場合はパッケージ同梱の既定値。
        myconfig: 同じディレクトリから探す個人用設定ファイル名。
        environ: 上書きに使う環境変数。``None`` の場合は ``os.environ``。

    Returns:
        Config: 読み込んだ設定。
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = os.path.expanduser(config_path)

    logger.info(f"設定ファイルを読み込み中: {config_path}")
    cfg = Config()
    cfg.from_pyfile(config_path)

    # 同じディレクトリに存在する任意の myconfig.py を探す。
    personal_cfg_path = os.path.join(os.path.dirname(config_path), myconfig)
    if myconfig and os.path.exists(personal_cfg_path):
        logger.info(f"個人用設定 {myconfig} から上書きを読み込みます")
        personal_cfg = Config()
        personal_cfg.from_pyfile(personal_cfg_path)
        cfg.from_object(personal_cfg)
    else:
        logger.debug(f"個人用設定が見つかりません: {personal_cfg_path}")

    cfg.from_env(environ)
    return cfg
