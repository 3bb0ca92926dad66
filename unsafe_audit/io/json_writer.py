"""監査結果のJSON出力モジュール。"""

from typing import Dict, List, Optional
from pathlib import Path
import logging

from pydantic import BaseModel, Field

from ..models.selection import FilterMode
from ..models.summary import FileResult, RegionSummary

logger = logging.getLogger(__name__)


class ActionReport(BaseModel):
    """1つのunsafeアクションの出力モデル。"""

    line: int = Field(ge=1, description="行番号（1始まり）")
    column: int = Field(ge=1, description="列番号（1始まり）")
    offset: int = Field(ge=0, description="バイトオフセット")
    tags: List[str] = Field(min_length=1, description="アクションのタグ（固定順）")
    excerpt: str = Field(description="アクションのソーステキスト")


class RegionReport(BaseModel):
    """1つのunsafe領域の出力モデル。"""

    kind: str = Field(description="fn または block")
    line: int = Field(ge=1)
    column: int = Field(ge=1)
    summary: str = Field(description="サマリー文字列")
    counts: Dict[str, int] = Field(description="タグごとの件数（固定順）")
    actions: List[ActionReport]


class FileReport(BaseModel):
    """1ファイル分の出力モデル。"""

    path: str
    error: Optional[str] = None
    region_count: int = Field(ge=0, description="検出した全領域数（フィルター前）")
    regions: List[RegionReport] = Field(default_factory=list)


class AuditReport(BaseModel):
    """監査結果全体の出力モデル。"""

    mode: Optional[str] = Field(default=None, description="nonffi, ffi, all")
    files: List[FileReport]


class JsonReportWriter:
    """監査結果をJSONファイルに書き込む。"""

    def __init__(self, output_file: str, indent: int = 2):
        """JSONライターを初期化する。

        Args:
            output_file: 出力JSONファイルのパス
            indent: インデント幅
        """
        self.output_file = Path(output_file)
        self.indent = indent

    def build_report(
        self,
        results: List[FileResult],
        mode: Optional[FilterMode] = None
    ) -> AuditReport:
        """監査結果から出力モデルを構築する。"""
        return AuditReport(
            mode=mode.value if mode else None,
            files=[
                FileReport(
                    path=result.path,
                    error=result.error,
                    region_count=result.region_count,
                    regions=[self._region_report(summary) for summary in result.summaries]
                )
                for result in results
            ]
        )

    def _region_report(self, summary: RegionSummary) -> RegionReport:
        location = summary.region.location
        return RegionReport(
            kind=summary.region.kind.value,
            line=location.line,
            column=location.column,
            summary=summary.summary_text(),
            counts={kind.label: count for kind, count in summary.counts},
            actions=[
                ActionReport(
                    line=action.location.line,
                    column=action.location.column,
                    offset=action.location.offset,
                    tags=[kind.label for kind in action.ordered_tags()],
                    excerpt=action.excerpt
                )
                for action in summary.actions
            ]
        )

    def write(self, results: List[FileResult], mode: Optional[FilterMode] = None) -> None:
        """監査結果をJSONファイルに書き込む。"""
        report = self.build_report(results, mode)

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output_file, "w", encoding="utf-8") as f:
            f.write(report.model_dump_json(indent=self.indent))
            f.write("\n")

        logger.info(f"JSON report written to {self.output_file}")
