"""unsafe領域内のアクション分類。"""

from typing import List, Optional, Set, Tuple
import logging

from ..models.action import ActionKind, ActionRecord
from ..models.declaration import DeclarationKind, PointerType
from ..models.region import UnsafeRegion
from .rust_parser import ParsedSource
from .symbol_resolver import DeclarationResolver
from .syntax import is_field, path_segments, type_indirection

logger = logging.getLogger(__name__)


class ActionClassifier:
    """領域が直接所有するノードをunsafeアクションとして分類する。

    1つのノードが複数の規則に該当する場合は、タグの和集合を持つ
    1件のActionRecordとして記録する。宣言が解決できないノードは
    タグなしとして読み飛ばす。
    """

    ASM_MACROS: Set[str] = {"asm", "global_asm", "naked_asm", "llvm_asm"}
    TRANSMUTE_NAME = "transmute"

    # 親がこれらの種別の場合、識別子は値の参照ではない
    NON_REFERENCE_PARENTS: Set[str] = {
        "scoped_identifier",
        "generic_function",
        "macro_invocation",
        "token_tree",
        "attribute",
        "use_declaration",
        "use_as_clause",
        "use_list",
        "scoped_use_list",
        "closure_parameters",
        "label",
    }

    # 親のこれらのフィールドにある識別子は値の参照ではない
    NON_REFERENCE_FIELDS: Tuple[str, ...] = ("name", "pattern", "type", "alias", "label")

    def __init__(self, parsed: ParsedSource, resolver: DeclarationResolver):
        """アクション分類器を初期化する。

        Args:
            parsed: パース済みソース
            resolver: 宣言属性を提供する名前解決器
        """
        self.parsed = parsed
        self.resolver = resolver

    def classify(self, region: UnsafeRegion) -> List[ActionRecord]:
        """領域が直接所有するアクションを分類する。

        領域と構文木は変更しない。

        Args:
            region: 分類対象のunsafe領域

        Returns:
            ソース順のActionRecordリスト
        """
        records: List[ActionRecord] = []

        for node in region.nodes:
            tags = self.classify_node(node)
            if not tags:
                continue

            location = self.parsed.location(node)
            records.append(ActionRecord(
                tags=frozenset(tags),
                location=location,
                excerpt=self.parsed.text(node),
                source_line=self.parsed.line_text(location.line)
            ))

        records.sort(key=lambda record: record.location.offset)

        logger.debug(
            f"Classified {len(records)} actions in {region.kind.value} "
            f"at {self.parsed.path}:{region.location}"
        )
        return records

    def classify_node(self, node) -> Set[ActionKind]:
        """1つのノードに該当するタグを求める。

        Args:
            node: tree-sitterノード

        Returns:
            タグの集合（該当なしの場合は空）
        """
        node_type = node.type

        if node_type == "unary_expression":
            return self._deref_tags(node)
        if node_type == "call_expression":
            return self._call_tags(node)
        if node_type in ("identifier", "scoped_identifier"):
            return self._static_tags(node)
        if node_type == "type_cast_expression":
            return self._cast_tags(node)
        if node_type == "macro_invocation":
            return self._macro_tags(node)

        return set()

    def _deref_tags(self, node) -> Set[ActionKind]:
        if not node.children or node.children[0].type != "*":
            return set()
        operands = node.named_children
        if not operands:
            return set()
        if self.resolver.pointer_type(operands[-1]) is None:
            return set()
        return {ActionKind.DEREF}

    def _call_tags(self, node) -> Set[ActionKind]:
        callee = node.child_by_field_name("function")
        if callee is None:
            return set()

        if self._callee_name(callee) == self.TRANSMUTE_NAME:
            return self._transmute_tags(node, callee)

        declaration = self.resolver.resolve(callee)
        if declaration is None:
            logger.debug(f"Unresolved call target: {self.parsed.text(callee)}")
            return set()
        if not declaration.is_callable:
            return set()

        if declaration.is_foreign and declaration.is_unsafe:
            return {ActionKind.FFI, ActionKind.UNSAFE_CALL}
        if declaration.is_unsafe:
            return {ActionKind.UNSAFE_CALL}
        return set()

    def _static_tags(self, node) -> Set[ActionKind]:
        if not self._is_reference_position(node):
            return set()

        declaration = self.resolver.resolve(node)
        if declaration is None or declaration.kind is not DeclarationKind.STATIC:
            return set()
        if declaration.is_static_mut or declaration.is_foreign:
            return {ActionKind.STATIC_MUT_ACCESS}
        return set()

    def _cast_tags(self, node) -> Set[ActionKind]:
        source = self.resolver.pointer_type(node.child_by_field_name("value"))
        target = type_indirection(self.parsed, node.child_by_field_name("type"))
        if self._is_const_to_mut(source, target, raw=True):
            return {ActionKind.CAST_CONST_TO_MUT}
        return set()

    def _macro_tags(self, node) -> Set[ActionKind]:
        segments = path_segments(self.parsed, node.child_by_field_name("macro"))
        if segments and segments[-1] in self.ASM_MACROS:
            return {ActionKind.INLINE_ASM}
        return set()

    def _transmute_tags(self, node, callee) -> Set[ActionKind]:
        source, target = self._transmute_types(node, callee)
        if self._is_const_to_mut(source, target, raw=False):
            return {ActionKind.TRANSMUTE_IMM_TO_MUT}
        if self._is_const_to_mut(source, target, raw=True):
            return {ActionKind.CAST_CONST_TO_MUT}
        return {ActionKind.TRANSMUTE}

    def _transmute_types(
        self,
        node,
        callee
    ) -> Tuple[Optional[PointerType], Optional[PointerType]]:
        """transmuteの変換元と変換先の型を求める。

        ターボフィッシュの型引数を優先し、なければ引数の式と
        代入先の型注釈から推定する。
        """
        source = None
        target = None

        if callee.type == "generic_function":
            type_arguments = callee.child_by_field_name("type_arguments")
            types = type_arguments.named_children if type_arguments is not None else []
            if len(types) >= 2:
                source = type_indirection(self.parsed, types[0])
                target = type_indirection(self.parsed, types[1])

        if source is None:
            arguments = node.child_by_field_name("arguments")
            values = [
                child for child in (arguments.named_children if arguments is not None else [])
                if child.type != "attribute_item"
            ]
            if len(values) == 1:
                source = (self.resolver.reference_type(values[0])
                          or self.resolver.pointer_type(values[0]))

        if target is None:
            target = self._destination_type(node)

        return source, target

    def _destination_type(self, node) -> Optional[PointerType]:
        parent = node.parent
        if parent is None:
            return None

        if parent.type == "let_declaration" and is_field(parent, node, "value"):
            return type_indirection(self.parsed, parent.child_by_field_name("type"))

        if parent.type == "assignment_expression" and is_field(parent, node, "right"):
            left = parent.child_by_field_name("left")
            return self.resolver.reference_type(left) or self.resolver.pointer_type(left)

        return None

    @staticmethod
    def _is_const_to_mut(
        source: Optional[PointerType],
        target: Optional[PointerType],
        raw: bool
    ) -> bool:
        if source is None or target is None:
            return False
        if source.is_raw != raw or target.is_raw != raw:
            return False
        return not source.mutable and target.mutable

    def _callee_name(self, callee) -> Optional[str]:
        if callee.type not in ("identifier", "scoped_identifier", "generic_function"):
            return None
        segments = path_segments(self.parsed, callee)
        return segments[-1] if segments else None

    def _is_reference_position(self, node) -> bool:
        """識別子またはパスが値の参照位置にあるかどうかを判定する。"""
        parent = node.parent
        if parent is None:
            return False

        parent_type = parent.type
        if parent_type in self.NON_REFERENCE_PARENTS or parent_type.endswith("_pattern"):
            return False

        for field_name in self.NON_REFERENCE_FIELDS:
            if is_field(parent, node, field_name):
                return False

        return True
