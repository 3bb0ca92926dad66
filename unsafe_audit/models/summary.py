"""領域ごとの集計結果とファイル単位の監査結果モデル。"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .action import ActionKind, ActionRecord
from .region import SourceLocation, UnsafeRegion


@dataclass
class RegionSummary:
    """1つのunsafe領域の集計結果。"""
    region: UnsafeRegion
    counts: List[Tuple[ActionKind, int]]
    excerpts: List[Tuple[SourceLocation, str]]
    actions: List[ActionRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.actions)

    def count_of(self, kind: ActionKind) -> int:
        for counted_kind, count in self.counts:
            if counted_kind is kind:
                return count
        return 0

    def summary_text(self) -> str:
        """サマリー文字列を取得する（例: "1 deref, 1 static mut"）。"""
        return ", ".join(f"{count} {kind.label}" for kind, count in self.counts)

    def __str__(self) -> str:
        return f"{self.region.kind.value} with {self.summary_text()}"


@dataclass
class FileResult:
    """1ファイル分の監査結果。"""
    path: str
    summaries: List[RegionSummary] = field(default_factory=list)
    region_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
