"""tree-sitterを使用したRustソースコード解析のラッパー。"""

from typing import Dict, List, Optional
import os
import logging
import threading

import tree_sitter_rust
from tree_sitter import Language, Parser

from ..models.region import SourceLocation

logger = logging.getLogger(__name__)

RUST_LANGUAGE = Language(tree_sitter_rust.language())


class RustParseError(Exception):
    """Rustソースの読み込みまたはパース時のエラー。"""
    pass


class ParsedSource:
    """パース済みのRustソースファイル。

    構文木とソースのバイト列を保持し、ノードから位置情報や
    ソーステキストを取り出す機能を提供する。
    """

    def __init__(self, path: str, source: bytes, tree):
        """パース結果を初期化する。

        Args:
            path: ソースファイルのパス（レポート表示用）
            source: ソースのバイト列
            tree: tree-sitterの構文木
        """
        self.path = path
        self.source = source
        self.tree = tree
        self._line_starts: Optional[List[int]] = None
        self._lines: Optional[List[str]] = None

    @property
    def root(self):
        """ルートノード（source_file）を取得する。"""
        return self.tree.root_node

    def _get_line_starts(self) -> List[int]:
        if self._line_starts is None:
            starts = [0]
            for index, byte in enumerate(self.source):
                if byte == 0x0A:
                    starts.append(index + 1)
            self._line_starts = starts
        return self._line_starts

    def location(self, node) -> SourceLocation:
        """ノードの開始位置を取得する。

        tree-sitterの列はバイト単位のため、文字単位の1始まりの列に変換する。

        Args:
            node: tree-sitterノード

        Returns:
            SourceLocation
        """
        row = node.start_point[0]
        line_start = self._get_line_starts()[row]
        prefix = self.source[line_start:node.start_byte]
        column = len(prefix.decode("utf-8", errors="replace")) + 1
        return SourceLocation(line=row + 1, column=column, offset=node.start_byte)

    def text(self, node) -> str:
        """ノードのソーステキストを取得する。"""
        if node is None:
            return ""
        return self.source[node.start_byte:node.end_byte].decode(
            "utf-8", errors="replace"
        )

    def line_text(self, line: int) -> str:
        """指定行（1始まり）のソーステキストを取得する。

        tree-sitterの行番号と一致させるため、改行は\\nのみとして扱う。
        """
        if self._lines is None:
            self._lines = [
                raw.decode("utf-8", errors="replace").rstrip("\r")
                for raw in self.source.split(b"\n")
            ]
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return ""

    def find_syntax_error(self):
        """最初の構文エラーノードを検索する。

        Returns:
            ERRORノードまたは欠落ノード、エラーがなければNone
        """
        if not self.root.has_error:
            return None

        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR" or node.is_missing:
                return node
            if node.has_error:
                stack.extend(reversed(node.children))
        return None


class RustParser:
    """tree-sitterを使用したRust解析のメインクラス。

    同じファイルの再パースを避けるため、パース結果をスレッドセーフに
    キャッシュする。
    """

    def __init__(self, strict: bool = True, encoding: str = "utf-8"):
        """Rustパーサーを初期化する。

        Args:
            strict: 構文エラーを含むファイルをエラーとして扱うか
            encoding: ソースファイルのエンコーディング
        """
        self.strict = strict
        self.encoding = encoding

        self._sources: Dict[str, ParsedSource] = {}
        self._cache_lock = threading.Lock()

        logger.debug(f"RustParser initialized (strict={strict}, encoding={encoding})")

    def parse_file(self, file_path: str, force_reparse: bool = False) -> ParsedSource:
        """ファイルをパースする。

        Args:
            file_path: ソースファイルのパス
            force_reparse: キャッシュがあっても強制的に再パース

        Returns:
            ParsedSource

        Raises:
            RustParseError: 読み込みまたはパースに失敗した場合
        """
        abs_path = os.path.abspath(file_path)

        with self._cache_lock:
            if not force_reparse and abs_path in self._sources:
                return self._sources[abs_path]

        if not os.path.isfile(abs_path):
            raise RustParseError(f"No such file: {file_path}")

        try:
            with open(abs_path, "rb") as f:
                raw = f.read()
            source = raw.decode(self.encoding).encode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise RustParseError(f"Failed to read {file_path}: {e}")

        parsed = self._parse(source, file_path)

        with self._cache_lock:
            self._sources[abs_path] = parsed

        return parsed

    def parse_string(self, source_code: str, filename: str = "<string>") -> ParsedSource:
        """文字列からRustソースコードをパースする。

        Args:
            source_code: Rustソースコード
            filename: ソースの仮想ファイル名

        Returns:
            ParsedSource
        """
        return self._parse(source_code.encode("utf-8"), filename)

    def _parse(self, source: bytes, filename: str) -> ParsedSource:
        # Parserはスレッド間で共有しない
        parser = Parser(RUST_LANGUAGE)
        tree = parser.parse(source)
        if tree is None:
            raise RustParseError(f"Failed to parse {filename}: returned None")

        parsed = ParsedSource(filename, source, tree)

        error_node = parsed.find_syntax_error()
        if error_node is not None:
            location = parsed.location(error_node)
            message = f"syntax error at {filename}:{location.line}:{location.column}"
            if self.strict:
                raise RustParseError(message)
            logger.warning(f"Parse error ignored: {message}")

        return parsed

    def clear_cache(self) -> None:
        """パース結果のキャッシュをクリアする。"""
        with self._cache_lock:
            self._sources.clear()
        logger.debug("Parse cache cleared")
