"""設定管理モジュール。"""

from dataclasses import dataclass
from typing import List, Dict, Optional, Any
from pathlib import Path
import os
import logging

import yaml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """アプリケーション設定。"""

    # 表示カテゴリ（CLIフラグで上書き）
    nonffi: bool = False
    ffi: bool = False

    # 処理設定
    jobs: int = 1  # 複数ファイル解析時のワーカースレッド数
    strict_parse: bool = True  # 構文エラーを含むファイルをエラーとして扱う
    file_encoding: str = "utf-8"

    # 出力設定
    excel_output: Optional[str] = None
    json_output: Optional[str] = None

    # ロギング設定（レポートを汚さないようにWARNINGが既定）
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    @classmethod
    def from_yaml(cls, file_path: str) -> "Config":
        """YAMLファイルから設定を読み込む。

        Args:
            file_path: YAML設定ファイルのパス

        Returns:
            Configインスタンス
        """
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)
        config.apply_env()

        logger.info(f"Configuration loaded from {file_path}")
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """辞書から設定を作成する。

        Args:
            data: 設定辞書

        Returns:
            Configインスタンス
        """
        config = cls()

        for key, value in data.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown configuration key ignored: {key}")

        return config

    @classmethod
    def load(cls, file_path: Optional[str] = None) -> "Config":
        """設定ファイル（任意）と環境変数から設定を作成する。

        Args:
            file_path: YAML設定ファイルのパス（省略時は既定値）

        Returns:
            Configインスタンス
        """
        if file_path:
            return cls.from_yaml(file_path)

        config = cls()
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """環境変数による上書きを適用する。"""
        self.log_level = os.getenv("UNSAFE_AUDIT_LOG_LEVEL", self.log_level)

        jobs = os.getenv("UNSAFE_AUDIT_JOBS")
        if jobs:
            try:
                self.jobs = int(jobs)
            except ValueError:
                logger.warning(f"Invalid UNSAFE_AUDIT_JOBS value ignored: {jobs}")

    def validate(self) -> List[str]:
        """設定を検証する。

        Returns:
            検証エラーのリスト（有効な場合は空）
        """
        errors = []

        if not isinstance(self.jobs, int) or self.jobs < 1:
            errors.append(f"jobs must be a positive integer: {self.jobs}")

        if str(self.log_level).upper() not in LOG_LEVELS:
            errors.append(f"unknown log level: {self.log_level}")

        for output in (self.excel_output, self.json_output):
            if not output:
                continue
            # 既存の最も近い親ディレクトリが書き込み可能かを確認
            parent = Path(output).resolve().parent
            while not parent.exists() and parent != parent.parent:
                parent = parent.parent
            if not os.access(parent, os.W_OK):
                errors.append(f"output directory is not writable: {parent}")

        return errors

    def to_dict(self) -> dict:
        """設定を辞書に変換する。

        Returns:
            辞書形式の設定
        """
        return {
            "nonffi": self.nonffi,
            "ffi": self.ffi,
            "jobs": self.jobs,
            "strict_parse": self.strict_parse,
            "file_encoding": self.file_encoding,
            "excel_output": self.excel_output,
            "json_output": self.json_output,
            "log_level": self.log_level,
            "log_file": self.log_file,
        }

    def save_yaml(self, file_path: str) -> None:
        """設定をYAMLファイルに保存。

        Args:
            file_path: 保存先パス
        """
        output_path = Path(file_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data: Dict[str, Any] = {
            key: value for key, value in self.to_dict().items()
            if value is not None
        }

        with open(file_path, "w", encoding="utf-8") as f:
            yaml.dump(
                data,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False
            )

        logger.info(f"Configuration saved to {file_path}")
