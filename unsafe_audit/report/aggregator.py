"""領域ごとのアクション集計。"""

from typing import Iterable, List, Optional

from ..models.action import ActionKind, ActionRecord
from ..models.region import UnsafeRegion
from ..models.summary import RegionSummary


class Aggregator:
    """領域のアクションを種別ごとの件数と抜粋リストにまとめる。"""

    def summarize(
        self,
        region: UnsafeRegion,
        actions: Optional[Iterable[ActionRecord]] = None
    ) -> RegionSummary:
        """1つの領域を集計する。

        タグごとに件数を数えるため、2つのタグを持つアクションは
        2つの件数に寄与する。

        Args:
            region: 集計対象の領域
            actions: 集計するアクション（省略時は領域の全アクション）

        Returns:
            RegionSummary
        """
        if actions is None:
            actions = region.actions
        ordered = sorted(actions, key=lambda action: action.location.offset)

        counts = []
        for kind in ActionKind.ordered():
            count = sum(1 for action in ordered if kind in action.tags)
            if count:
                counts.append((kind, count))

        return RegionSummary(
            region=region,
            counts=counts,
            excerpts=[(action.location, action.excerpt) for action in ordered],
            actions=ordered
        )

    def summarize_all(self, regions: List[UnsafeRegion]) -> List[RegionSummary]:
        return [self.summarize(region) for region in regions]
