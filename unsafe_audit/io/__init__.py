"""監査結果のファイル出力モジュール。"""

from .excel_writer import AuditExcelWriter
from .json_writer import JsonReportWriter, AuditReport

__all__ = ["AuditExcelWriter", "JsonReportWriter", "AuditReport"]
