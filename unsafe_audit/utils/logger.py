"""ロギング設定モジュール。"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None) -> logging.Logger:
    """ルートロガーにハンドラーを設定する。

    標準出力はレポート用のため、コンソールへのログは標準エラーに出す。
    log_fileを指定した場合は同じ内容をUTF-8のファイルにも書き出す。

    Args:
        level: ログレベル名（不明な名前はWARNING扱い）
        log_file: ログファイルへのパス（省略可）

    Returns:
        ルートロガー
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    return root_logger


class AuditProgress:
    """複数ファイル監査の進捗をログ出力する。

    ファイルごとの完了はdebug、every件ごとの途中経過と最後の集計はinfoで出す。
    """

    def __init__(self, total: int, logger: logging.Logger, every: int = 10):
        self.total = total
        self.logger = logger
        self.every = max(every, 1)
        self.done = 0
        self.failed = 0

    def advance(self, path: str, ok: bool = True) -> None:
        """1ファイル分の監査完了を記録する。"""
        self.done += 1
        if not ok:
            self.failed += 1

        self.logger.debug(f"[{self.done}/{self.total}] {path}")
        if self.done % self.every == 0 and self.done < self.total:
            self.logger.info(f"Audited {self.done} of {self.total} files")

    def finish(self) -> None:
        self.logger.info(f"Audited {self.done} files ({self.failed} failed)")
