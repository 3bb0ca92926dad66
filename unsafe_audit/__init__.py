"""Rustソースのunsafe領域とunsafeアクションを一覧化する監査ツール。"""

__version__ = "0.1.0"
