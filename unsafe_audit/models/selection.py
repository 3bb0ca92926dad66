"""表示対象カテゴリの選択モデル。"""

from typing import Optional
from enum import Enum

from .action import ActionRecord


class FilterMode(Enum):
    """レポートに含めるアクションのカテゴリ。"""
    NON_FFI_ONLY = "nonffi"
    FFI_ONLY = "ffi"
    ALL = "all"

    @classmethod
    def from_flags(cls, nonffi: bool, ffi: bool) -> Optional["FilterMode"]:
        """CLIフラグからフィルターモードを決定する。

        Args:
            nonffi: 非FFIアクションを表示するか
            ffi: FFIアクションを表示するか

        Returns:
            FilterMode、どちらも指定されていない場合はNone
        """
        if nonffi and ffi:
            return cls.ALL
        if nonffi:
            return cls.NON_FFI_ONLY
        if ffi:
            return cls.FFI_ONLY
        return None

    def includes(self, action: ActionRecord) -> bool:
        """アクションがこのモードで表示対象かどうかを判定する。"""
        if self is FilterMode.ALL:
            return True
        if self is FilterMode.FFI_ONLY:
            return action.is_ffi
        return not action.is_ffi
