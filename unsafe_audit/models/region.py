"""unsafe領域とソース位置のモデル。"""

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional
from enum import Enum

from .action import ActionRecord


@dataclass(frozen=True)
class SourceLocation:
    """ソースコードの位置情報。

    行と列は1始まり、offsetは0始まりのバイトオフセット。
    """
    line: int
    column: int
    offset: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class RegionKind(Enum):
    """unsafe領域の種別。値はレポート上の表記。"""
    FUNCTION = "fn"
    BLOCK = "block"


@dataclass(eq=False)
class UnsafeRegion:
    """監査対象となる1つのunsafe領域。

    parentは直近の外側のunsafe領域（トップレベルならNone）。
    actionsにはこの領域が直接所有するアクションのみを保持し、
    子領域が所有するアクションは含めない。
    """
    kind: RegionKind
    location: SourceLocation
    parent: Optional["UnsafeRegion"] = None
    actions: List[ActionRecord] = field(default_factory=list)
    children: List["UnsafeRegion"] = field(default_factory=list, repr=False)

    # ロケーターが割り当てる構文ノード（tree-sitter Node）
    node: Any = field(default=None, repr=False)
    nodes: List[Any] = field(default_factory=list, repr=False)

    @property
    def is_fn(self) -> bool:
        return self.kind is RegionKind.FUNCTION

    def add_actions(self, actions: List[ActionRecord]) -> None:
        """所有アクションを追加する。"""
        self.actions.extend(actions)

    def ancestors(self) -> Iterator["UnsafeRegion"]:
        """親から順に祖先領域を返す。"""
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def depth(self) -> int:
        return sum(1 for _ in self.ancestors())

    def __str__(self) -> str:
        return f"{self.kind.value} at {self.location} ({len(self.actions)} actions)"
