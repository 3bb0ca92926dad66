"""unsafe監査ツールのメインエントリーポイント。"""

import argparse
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional
from dataclasses import dataclass
import logging

from .config import Config
from .analyzer.rust_parser import RustParser, RustParseError, ParsedSource
from .analyzer.symbol_resolver import SymbolResolver
from .analyzer.region_locator import RegionLocator, RegionTreeError
from .analyzer.action_classifier import ActionClassifier
from .report.aggregator import Aggregator
from .report.selector import RegionSelector
from .report.text_reporter import TextReporter
from .io.excel_writer import AuditExcelWriter
from .io.json_writer import JsonReportWriter
from .models.selection import FilterMode
from .models.summary import FileResult
from .utils.logger import setup_logging, AuditProgress

logger = logging.getLogger(__name__)


@dataclass
class ProcessingStats:
    """処理統計情報。"""
    files: int = 0
    failed: int = 0
    regions: int = 0
    reported_regions: int = 0
    reported_actions: int = 0


class UnsafeAuditor:
    """unsafe監査のメインクラス。

    ファイルごとに パース → 領域検出 → アクション分類 → 集計 → 選択 を
    独立に実行する。
    """

    def __init__(self, config: Config):
        """監査器を初期化する。

        Args:
            config: アプリケーション設定
        """
        self.config = config
        self.stats = ProcessingStats()
        self._stats_lock = threading.Lock()

        self._init_components()

    def _init_components(self) -> None:
        """すべてのコンポーネントを初期化する。"""
        self.parser = RustParser(
            strict=self.config.strict_parse,
            encoding=self.config.file_encoding
        )
        self.locator = RegionLocator()
        self.aggregator = Aggregator()

        self.mode = FilterMode.from_flags(self.config.nonffi, self.config.ffi)
        self.selector = RegionSelector(self.mode, self.aggregator)

        logger.info("All components initialized")

    def audit_source(self, parsed: ParsedSource) -> FileResult:
        """パース済みソースを監査する。

        Args:
            parsed: パース済みソース

        Returns:
            FileResult

        Raises:
            RegionTreeError: 領域ツリーが整合しない場合
        """
        resolver = SymbolResolver(parsed)
        classifier = ActionClassifier(parsed, resolver)

        regions = self.locator.locate(parsed)
        for region in regions:
            region.add_actions(classifier.classify(region))

        summaries = self.aggregator.summarize_all(regions)
        selected = self.selector.select(summaries)

        return FileResult(
            path=parsed.path,
            summaries=selected,
            region_count=len(regions)
        )

    def audit_file(self, file_path: str) -> FileResult:
        """1ファイルを監査する。

        入力エラーはこのファイルの失敗として記録し、例外は送出しない。

        Args:
            file_path: ソースファイルのパス

        Returns:
            FileResult
        """
        logger.debug(f"Auditing {file_path}")

        try:
            parsed = self.parser.parse_file(file_path)
        except RustParseError as e:
            logger.error(f"Failed to audit {file_path}: {e}")
            return FileResult(path=file_path, error=str(e))

        return self.audit_source(parsed)

    def audit_files(self, file_paths: List[str]) -> List[FileResult]:
        """複数ファイルを監査する。

        jobsが2以上の場合はスレッドプールで並列に処理するが、
        結果は常に入力順で返す。

        Args:
            file_paths: ソースファイルパスのリスト

        Returns:
            入力順のFileResultリスト
        """
        progress = AuditProgress(len(file_paths), logger)
        results: List[FileResult] = []

        if self.config.jobs <= 1 or len(file_paths) <= 1:
            for file_path in file_paths:
                result = self.audit_file(file_path)
                results.append(result)
                progress.advance(file_path, result.ok)
        else:
            with ThreadPoolExecutor(max_workers=self.config.jobs) as executor:
                futures = [
                    executor.submit(self.audit_file, file_path)
                    for file_path in file_paths
                ]
                for file_path, future in zip(file_paths, futures):
                    result = future.result()
                    results.append(result)
                    progress.advance(file_path, result.ok)

        progress.finish()
        self._update_stats(results)
        return results

    def _update_stats(self, results: List[FileResult]) -> None:
        with self._stats_lock:
            for result in results:
                self.stats.files += 1
                if not result.ok:
                    self.stats.failed += 1
                    continue
                self.stats.regions += result.region_count
                self.stats.reported_regions += len(result.summaries)
                self.stats.reported_actions += sum(
                    summary.total for summary in result.summaries
                )

    def export(self, results: List[FileResult]) -> None:
        """設定された形式で監査結果をファイルに出力する。"""
        if self.config.excel_output:
            AuditExcelWriter(self.config.excel_output).write(results, self.mode)
        if self.config.json_output:
            JsonReportWriter(self.config.json_output).write(results, self.mode)

    def log_statistics(self) -> None:
        """処理統計をログ出力する。"""
        logger.info("=" * 50)
        logger.info("Processing Statistics:")
        logger.info(f"  Files: {self.stats.files}")
        logger.info(f"  Failed: {self.stats.failed}")
        logger.info(f"  Unsafe regions: {self.stats.regions}")
        logger.info(f"  Reported regions: {self.stats.reported_regions}")
        logger.info(f"  Reported actions: {self.stats.reported_actions}")
        logger.info("=" * 50)


def build_arg_parser() -> argparse.ArgumentParser:
    """コマンドライン引数パーサーを構築する。"""
    parser = argparse.ArgumentParser(
        prog="unsafe-audit",
        description="find all unsafe blocks and print the unsafe actions within them"
    )
    parser.add_argument(
        "files",
        nargs="+",
        metavar="FILE",
        help="解析するRustソースファイル"
    )
    parser.add_argument(
        "-n", "--nonffi",
        action="store_true",
        help="非FFIのunsafeアクションを含む領域を表示する"
    )
    parser.add_argument(
        "-f", "--ffi",
        action="store_true",
        help="FFI呼び出しを含む領域を表示する"
    )
    parser.add_argument(
        "-c", "--config",
        help="設定ファイルパス（YAML）"
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        help="並列に解析するファイル数"
    )
    parser.add_argument(
        "--excel",
        metavar="PATH",
        help="Excel形式のレポート出力先"
    )
    parser.add_argument(
        "--json",
        metavar="PATH",
        help="JSON形式のレポート出力先"
    )
    parser.add_argument(
        "--allow-syntax-errors",
        action="store_true",
        help="構文エラーを含むファイルも解析する"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="詳細ログを有効にする"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント。

    Returns:
        終了コード（0: 成功、1: 入力または設定エラー、2: 内部エラー）
    """
    args = build_arg_parser().parse_args(argv)

    if args.config and not Path(args.config).exists():
        print(f"Error: 設定ファイルが見つかりません: {args.config}", file=sys.stderr)
        return 1

    config = Config.load(args.config)

    # コマンドライン引数で設定を上書き
    if args.nonffi:
        config.nonffi = True
    if args.ffi:
        config.ffi = True
    if args.jobs is not None:
        config.jobs = args.jobs
    if args.excel:
        config.excel_output = args.excel
    if args.json:
        config.json_output = args.json
    if args.allow_syntax_errors:
        config.strict_parse = False
    if args.verbose:
        config.log_level = "DEBUG"

    setup_logging(level=config.log_level, log_file=config.log_file)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    if not config.nonffi and not config.ffi:
        logger.warning("No category selected (use --nonffi and/or --ffi); nothing will be reported")

    try:
        auditor = UnsafeAuditor(config)
        results = auditor.audit_files(args.files)
    except RegionTreeError as e:
        logger.exception(f"Internal error: {e}")
        return 2

    TextReporter(sys.stdout).write(results)

    for result in results:
        if not result.ok:
            print(f"{result.path}: error: {result.error}", file=sys.stderr)

    auditor.export(results)
    auditor.log_statistics()

    return 0 if all(result.ok for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
