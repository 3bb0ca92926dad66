"""表示カテゴリによる領域とアクションの選択。"""

from typing import List, Optional
import logging

from ..models.selection import FilterMode
from ..models.summary import RegionSummary
from .aggregator import Aggregator

logger = logging.getLogger(__name__)


class RegionSelector:
    """フィルターモードに従って表示する領域とアクションを選択する。

    - NON_FFI_ONLY: FFIタグを持たないアクションのみ
    - FFI_ONLY: FFIタグを持つアクションのみ（全タグを表示）
    - ALL: 全アクション

    選択後にアクションが残らない領域は省略する。モードがNoneの場合は
    何も表示しない。
    """

    def __init__(self, mode: Optional[FilterMode], aggregator: Optional[Aggregator] = None):
        """セレクターを初期化する。

        Args:
            mode: フィルターモード（Noneの場合は何も選択しない）
            aggregator: 選択後の再集計に使用するAggregator
        """
        self.mode = mode
        self.aggregator = aggregator or Aggregator()

    def select(self, summaries: List[RegionSummary]) -> List[RegionSummary]:
        """表示対象の領域集計を選択する。

        Args:
            summaries: 全領域の集計結果（ソース順）

        Returns:
            表示対象のRegionSummaryリスト
        """
        if self.mode is None:
            return []

        selected: List[RegionSummary] = []
        for summary in summaries:
            kept = [action for action in summary.actions if self.mode.includes(action)]
            if not kept:
                continue
            if len(kept) == len(summary.actions):
                selected.append(summary)
            else:
                selected.append(self.aggregator.summarize(summary.region, kept))

        logger.debug(
            f"Selected {len(selected)} of {len(summaries)} regions ({self.mode.value})"
        )
        return selected
