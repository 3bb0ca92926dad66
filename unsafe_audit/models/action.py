"""unsafeアクションの分類モデル。"""

from dataclasses import dataclass
from typing import FrozenSet, List, TYPE_CHECKING
from enum import Enum

if TYPE_CHECKING:
    from .region import SourceLocation


class ActionKind(Enum):
    """unsafeアクションのタグ。値はレポート上のラベル。

    定義順がサマリー行での固定の表示順になる。
    """
    DEREF = "deref"
    STATIC_MUT_ACCESS = "static mut"
    FFI = "ffi"
    UNSAFE_CALL = "unsafe call"
    INLINE_ASM = "asm"
    TRANSMUTE = "transmute"
    TRANSMUTE_IMM_TO_MUT = "transmute & to &mut"
    CAST_CONST_TO_MUT = "cast *const to *mut"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def ordered(cls) -> List["ActionKind"]:
        """サマリー表示順のアクション種別リストを取得する。"""
        return list(cls)


@dataclass(frozen=True)
class ActionRecord:
    """分類済みの1つのunsafeアクション。"""
    tags: FrozenSet[ActionKind]
    location: "SourceLocation"
    excerpt: str
    source_line: str = ""

    def __post_init__(self):
        if not self.tags:
            raise ValueError("ActionRecord requires at least one tag")
        # 外部関数呼び出しは常にunsafe呼び出しでもある
        if ActionKind.FFI in self.tags and ActionKind.UNSAFE_CALL not in self.tags:
            raise ValueError("An ffi action must also be tagged as an unsafe call")

    @property
    def is_ffi(self) -> bool:
        return ActionKind.FFI in self.tags

    def has(self, kind: ActionKind) -> bool:
        return kind in self.tags

    def ordered_tags(self) -> List[ActionKind]:
        """タグを固定の表示順で取得する。"""
        return [kind for kind in ActionKind if kind in self.tags]

    def __str__(self) -> str:
        labels = ", ".join(kind.label for kind in self.ordered_tags())
        return f"[{labels}] at {self.location}: {self.excerpt}"
