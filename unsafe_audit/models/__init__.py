"""Data models for unsafe code auditing."""

from .action import ActionKind, ActionRecord
from .region import SourceLocation, RegionKind, UnsafeRegion
from .selection import FilterMode
from .summary import RegionSummary, FileResult
from .declaration import Declaration, DeclarationKind, PointerType

__all__ = [
    "ActionKind",
    "ActionRecord",
    "SourceLocation",
    "RegionKind",
    "UnsafeRegion",
    "FilterMode",
    "RegionSummary",
    "FileResult",
    "Declaration",
    "DeclarationKind",
    "PointerType",
]
