"""unsafe領域の検出と領域ツリーの構築。"""

from typing import Dict, List, Optional, Set
import logging

from ..models.region import RegionKind, UnsafeRegion
from .rust_parser import ParsedSource
from .syntax import has_unsafe_modifier

logger = logging.getLogger(__name__)


class RegionTreeError(Exception):
    """領域ツリーの内部整合性エラー。"""
    pass


class RegionLocator:
    """構文木からunsafe領域のツリーを構築する。

    深さ優先で1回だけ走査し、各ノードを直近の有効なunsafe領域に
    割り当てる。unsafeでない関数やクロージャ、その他のアイテムに入ると
    unsafe文脈はリセットされ、その内側のノードはどの領域にも属さない。
    ただし内側で新たに開かれた領域の親は、境界に入る直前の領域になる。
    """

    REGION_KINDS: Dict[str, RegionKind] = {
        "function_item": RegionKind.FUNCTION,
        "unsafe_block": RegionKind.BLOCK,
    }

    # unsafe文脈を引き継がない境界
    CONTEXT_RESET_TYPES: Set[str] = {
        "function_item",
        "closure_expression",
        "const_item",
        "static_item",
        "impl_item",
        "trait_item",
        "mod_item",
        "foreign_mod_item",
        "struct_item",
        "enum_item",
        "union_item",
    }

    def locate(self, parsed: ParsedSource) -> List[UnsafeRegion]:
        """unsafe領域を検出する。

        Args:
            parsed: パース済みソース

        Returns:
            ソース順のUnsafeRegionリスト（親リンクでツリーを構成）

        Raises:
            RegionTreeError: 領域ツリーが整合しない場合
        """
        regions: List[UnsafeRegion] = []

        # (ノード, 所有領域, 直近の外側の領域)
        stack = [(child, None, None) for child in reversed(parsed.root.named_children)]

        while stack:
            node, owner, enclosing = stack.pop()

            if self._opens_region(node):
                region = self._open_region(parsed, node, enclosing)
                regions.append(region)
                owner = enclosing = region
            elif node.type in self.CONTEXT_RESET_TYPES:
                owner = None
            elif owner is not None:
                owner.nodes.append(node)

            for child in reversed(node.named_children):
                stack.append((child, owner, enclosing))

        regions.sort(key=lambda region: region.location.offset)
        self._check_tree(regions)

        logger.debug(f"Located {len(regions)} unsafe regions in {parsed.path}")
        return regions

    def _opens_region(self, node) -> bool:
        if node.type == "unsafe_block":
            return True
        return node.type == "function_item" and has_unsafe_modifier(node)

    def _open_region(
        self,
        parsed: ParsedSource,
        node,
        parent: Optional[UnsafeRegion]
    ) -> UnsafeRegion:
        kind = self.REGION_KINDS.get(node.type)
        if kind is None:
            raise RegionTreeError(
                f"Unsafe node of unknown kind '{node.type}' at "
                f"{parsed.path}:{parsed.location(node)}"
            )

        region = UnsafeRegion(
            kind=kind,
            location=parsed.location(node),
            parent=parent,
            node=node
        )
        if parent is not None:
            parent.children.append(region)
        return region

    def _check_tree(self, regions: List[UnsafeRegion]) -> None:
        """領域ツリーの整合性を検証する。"""
        seen_nodes: Set[int] = set()

        for region in regions:
            if region.node is not None:
                if self.REGION_KINDS.get(region.node.type) is not region.kind:
                    raise RegionTreeError(
                        f"Region at {region.location} has kind {region.kind.value} "
                        f"but node type '{region.node.type}'"
                    )
                if region.node.id in seen_nodes:
                    raise RegionTreeError(f"Duplicate region at {region.location}")
                seen_nodes.add(region.node.id)

            visited = {id(region)}
            for ancestor in region.ancestors():
                if id(ancestor) in visited:
                    raise RegionTreeError(f"Cycle in region tree at {region.location}")
                visited.add(id(ancestor))
