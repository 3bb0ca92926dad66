"""監査結果のExcel出力モジュール。"""

from typing import Dict, List, Optional
from pathlib import Path
import logging

from openpyxl import Workbook
from openpyxl.styles import PatternFill, Font, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from ..models.action import ActionKind
from ..models.selection import FilterMode
from ..models.summary import FileResult

logger = logging.getLogger(__name__)


class AuditExcelWriter:
    """監査結果をExcelファイルに書き込む。"""

    # 各アクション種別の色（RGB hex、#なし）
    KIND_COLORS: Dict[ActionKind, str] = {
        ActionKind.DEREF: "FFC7CE",                 # 赤 - メモリ直接操作
        ActionKind.STATIC_MUT_ACCESS: "FFEB9C",     # 黄 - 共有状態
        ActionKind.FFI: "DDEBF7",                   # 青 - 外部境界
        ActionKind.UNSAFE_CALL: "E2EFDA",           # 緑 - 呼び出し
        ActionKind.INLINE_ASM: "F8CBAD",            # 橙 - アセンブリ
        ActionKind.TRANSMUTE: "D9D9D9",             # 灰 - 型変換
        ActionKind.TRANSMUTE_IMM_TO_MUT: "FFC7CE",
        ActionKind.CAST_CONST_TO_MUT: "FFC7CE",
    }

    REGION_HEADERS = ["ファイル", "行", "列", "種別", "アクション数", "サマリー"]
    ACTION_HEADERS = ["ファイル", "行", "列", "領域の行", "タグ", "コード"]

    HEADER_FILL = "4472C4"

    def __init__(self, output_file: str):
        """Excelライターを初期化する。

        Args:
            output_file: 出力Excelファイルのパス
        """
        self.output_file = Path(output_file)
        self._thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin")
        )

    def write(self, results: List[FileResult], mode: Optional[FilterMode] = None) -> None:
        """監査結果をExcelファイルに書き込む。

        Regions, Actions, Summaryの3シートを作成する。

        Args:
            results: ファイルごとの監査結果（入力順）
            mode: 適用したフィルターモード
        """
        wb = Workbook()

        ws_regions = wb.active
        ws_regions.title = "Regions"
        self._write_regions(ws_regions, results)

        ws_actions = wb.create_sheet("Actions")
        self._write_actions(ws_actions, results)

        ws_summary = wb.create_sheet("Summary")
        self._write_summary(ws_summary, results, mode)

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        wb.save(self.output_file)
        logger.info(f"Results written to {self.output_file}")

    def _write_header(self, ws, headers: List[str], row: int = 1) -> None:
        """ヘッダー行を書き込む。"""
        white_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(
            start_color=self.HEADER_FILL,
            end_color=self.HEADER_FILL,
            fill_type="solid"
        )
        header_alignment = Alignment(horizontal="center", vertical="center")

        for i, header in enumerate(headers, 1):
            cell = ws.cell(row=row, column=i)
            cell.value = header
            cell.font = white_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = self._thin_border

    def _write_row(self, ws, row: int, values: list) -> None:
        for i, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=i)
            cell.value = value
            cell.border = self._thin_border
            if isinstance(value, int):
                cell.alignment = Alignment(horizontal="right")
            else:
                cell.alignment = Alignment(wrap_text=True, vertical="top")

    def _write_regions(self, ws, results: List[FileResult]) -> None:
        """領域一覧シートを書き込む。"""
        self._write_header(ws, self.REGION_HEADERS)

        row = 2
        for result in results:
            for summary in result.summaries:
                location = summary.region.location
                self._write_row(ws, row, [
                    result.path,
                    location.line,
                    location.column,
                    summary.region.kind.value,
                    summary.total,
                    summary.summary_text(),
                ])
                row += 1

        self._adjust_column_widths(ws, [40, 8, 8, 8, 12, 50])

    def _write_actions(self, ws, results: List[FileResult]) -> None:
        """アクション一覧シートを書き込む。"""
        self._write_header(ws, self.ACTION_HEADERS)

        row = 2
        for result in results:
            for summary in result.summaries:
                for action in summary.actions:
                    tags = action.ordered_tags()
                    self._write_row(ws, row, [
                        result.path,
                        action.location.line,
                        action.location.column,
                        summary.region.location.line,
                        ", ".join(kind.label for kind in tags),
                        action.excerpt,
                    ])
                    # 先頭タグの色でタグ列を塗る
                    color = self.KIND_COLORS[tags[0]]
                    ws.cell(row=row, column=5).fill = PatternFill(
                        start_color=color,
                        end_color=color,
                        fill_type="solid"
                    )
                    row += 1

        self._adjust_column_widths(ws, [40, 8, 8, 10, 24, 60])

    def _write_summary(
        self,
        ws,
        results: List[FileResult],
        mode: Optional[FilterMode]
    ) -> None:
        """種別ごとの件数を含むサマリーシートを書き込む。"""
        counts: Dict[ActionKind, int] = {kind: 0 for kind in ActionKind.ordered()}
        region_total = 0
        action_total = 0

        for result in results:
            for summary in result.summaries:
                region_total += 1
                action_total += summary.total
                for kind, count in summary.counts:
                    counts[kind] += count

        ws["A1"] = "unsafe監査サマリー"
        ws["A1"].font = Font(bold=True, size=14)
        ws.merge_cells("A1:B1")

        ws["A2"] = f"表示カテゴリ: {mode.value if mode else 'none'}"
        ws.merge_cells("A2:B2")

        self._write_header(ws, ["種別", "件数"], row=4)

        row = 5
        for kind, count in counts.items():
            cell_kind = ws.cell(row=row, column=1)
            cell_kind.value = kind.label
            cell_kind.fill = PatternFill(
                start_color=self.KIND_COLORS[kind],
                end_color=self.KIND_COLORS[kind],
                fill_type="solid"
            )
            cell_kind.border = self._thin_border

            cell_count = ws.cell(row=row, column=2)
            cell_count.value = count
            cell_count.alignment = Alignment(horizontal="right")
            cell_count.border = self._thin_border
            row += 1

        for label, value in (("領域数", region_total), ("アクション数", action_total)):
            cell_label = ws.cell(row=row, column=1)
            cell_label.value = label
            cell_label.font = Font(bold=True)
            cell_label.border = self._thin_border

            cell_value = ws.cell(row=row, column=2)
            cell_value.value = value
            cell_value.font = Font(bold=True)
            cell_value.alignment = Alignment(horizontal="right")
            cell_value.border = self._thin_border
            row += 1

        self._adjust_column_widths(ws, [24, 10])

    def _adjust_column_widths(self, ws, widths: List[int]) -> None:
        for i, width in enumerate(widths, 1):
            col_letter = get_column_letter(i)
            ws.column_dimensions[col_letter].width = width
