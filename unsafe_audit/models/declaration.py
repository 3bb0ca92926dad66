"""名前解決の結果として得られる宣言情報のモデル。"""

from dataclasses import dataclass
from typing import Optional
from enum import Enum


class DeclarationKind(Enum):
    """宣言の種別。"""
    FUNCTION = "function"
    METHOD = "method"
    STATIC = "static"


@dataclass(frozen=True)
class PointerType:
    """ポインタまたは参照の型情報。"""
    mutable: bool
    target: str = "_"
    is_raw: bool = True

    def __str__(self) -> str:
        if self.is_raw:
            return f"*{'mut' if self.mutable else 'const'} {self.target}"
        return f"&{'mut ' if self.mutable else ''}{self.target}"


@dataclass(frozen=True)
class Declaration:
    """解決された宣言の属性。"""
    name: str
    kind: DeclarationKind
    is_foreign: bool = False
    is_unsafe: bool = False
    is_static_mut: bool = False
    line: Optional[int] = None

    # 静的変数の型、または関数の戻り値型がポインタの場合のみ設定
    pointer: Optional[PointerType] = None

    @property
    def is_callable(self) -> bool:
        return self.kind in (DeclarationKind.FUNCTION, DeclarationKind.METHOD)

    def __str__(self) -> str:
        flags = []
        if self.is_foreign:
            flags.append("foreign")
        if self.is_unsafe:
            flags.append("unsafe")
        if self.is_static_mut:
            flags.append("static mut")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        return f"{self.kind.value} {self.name}{suffix}"
