"""tree-sitterノードを扱うための補助関数。"""

from typing import Optional, Tuple

from ..models.declaration import PointerType
from .rust_parser import ParsedSource


def child_of_type(node, node_type: str):
    """指定した種別の最初の子ノードを取得する。"""
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def has_child(node, node_type: str) -> bool:
    """指定した種別の子ノードを持つかどうかを判定する。"""
    return child_of_type(node, node_type) is not None


def is_field(parent, node, field_name: str) -> bool:
    """nodeがparentの指定フィールドかどうかを判定する。"""
    child = parent.child_by_field_name(field_name)
    return child is not None and child.id == node.id


def has_unsafe_modifier(node) -> bool:
    """関数アイテムがunsafe修飾子を持つかどうかを判定する。"""
    modifiers = child_of_type(node, "function_modifiers")
    return modifiers is not None and has_child(modifiers, "unsafe")


def path_segments(parsed: ParsedSource, node) -> Tuple[str, ...]:
    """パス式をセグメントのタプルに分解する。

    例: ``std::mem::transmute::<A, B>`` -> ("std", "mem", "transmute")

    Args:
        parsed: パース済みソース
        node: identifier, scoped_identifier, generic_function などのノード

    Returns:
        パスセグメントのタプル
    """
    if node is None:
        return ()

    node_type = node.type
    if node_type in ("scoped_identifier", "scoped_type_identifier"):
        prefix = path_segments(parsed, node.child_by_field_name("path"))
        name = node.child_by_field_name("name")
        return prefix + (parsed.text(name),)
    if node_type in ("generic_type", "generic_type_with_turbofish"):
        return path_segments(parsed, node.child_by_field_name("type"))
    if node_type == "generic_function":
        return path_segments(parsed, node.child_by_field_name("function"))

    return (parsed.text(node),)


def type_indirection(parsed: ParsedSource, type_node) -> Optional[PointerType]:
    """型ノードがポインタ型または参照型であればその情報を取得する。

    Args:
        parsed: パース済みソース
        type_node: 型ノード

    Returns:
        PointerType、ポインタでも参照でもない場合はNone
    """
    if type_node is None:
        return None

    if type_node.type == "pointer_type":
        return PointerType(
            mutable=has_child(type_node, "mutable_specifier"),
            target=parsed.text(type_node.child_by_field_name("type")),
            is_raw=True
        )
    if type_node.type == "reference_type":
        return PointerType(
            mutable=has_child(type_node, "mutable_specifier"),
            target=parsed.text(type_node.child_by_field_name("type")),
            is_raw=False
        )
    return None
