"""tree-sitterを使用したRustソースコード解析モジュール。"""

from .rust_parser import RustParser, RustParseError, ParsedSource
from .symbol_resolver import DeclarationResolver, SymbolResolver
from .region_locator import RegionLocator, RegionTreeError
from .action_classifier import ActionClassifier

__all__ = [
    "RustParser",
    "RustParseError",
    "ParsedSource",
    "DeclarationResolver",
    "SymbolResolver",
    "RegionLocator",
    "RegionTreeError",
    "ActionClassifier",
]
