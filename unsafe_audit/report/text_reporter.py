"""監査結果のテキスト出力。"""

from typing import List, Optional, Set, TextIO
import sys

from ..models.summary import FileResult, RegionSummary


class TextReporter:
    """領域ごとにサマリー行とアクションのソース行を出力する。

    出力形式::

        <file>:<line>:<col>: <fn|block> with <count> <label>, ...
            <source line>
    """

    INDENT = "    "

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def format_region(self, path: str, summary: RegionSummary) -> List[str]:
        """1つの領域のブロックを整形する。

        アクションのソース行は同じ行を1回だけ、ソース順に出力する。

        Args:
            path: ファイルパス
            summary: 領域の集計結果

        Returns:
            出力行のリスト
        """
        location = summary.region.location
        lines = [
            f"{path}:{location.line}:{location.column}: "
            f"{summary.region.kind.value} with {summary.summary_text()}"
        ]

        seen: Set[int] = set()
        for action in summary.actions:
            line_number = action.location.line
            if line_number in seen:
                continue
            seen.add(line_number)
            text = action.source_line.strip() or action.excerpt
            lines.append(f"{self.INDENT}{text}")

        return lines

    def format_results(self, results: List[FileResult]) -> str:
        lines: List[str] = []
        for result in results:
            for summary in result.summaries:
                lines.extend(self.format_region(result.path, summary))
        return "".join(f"{line}\n" for line in lines)

    def write(self, results: List[FileResult]) -> None:
        """監査結果を出力ストリームに書き込む。"""
        self.stream.write(self.format_results(results))
        self.stream.flush()
