"""ユーティリティモジュール。"""

from .logger import setup_logging, AuditProgress

__all__ = ["setup_logging", "AuditProgress"]
