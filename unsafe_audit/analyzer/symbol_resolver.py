"""Rustソースファイルの関数・静的変数のシンボル解決。"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple
import logging

from ..models.declaration import Declaration, DeclarationKind, PointerType
from .rust_parser import ParsedSource
from .syntax import (
    child_of_type,
    has_child,
    has_unsafe_modifier,
    is_field,
    path_segments,
    type_indirection,
)

logger = logging.getLogger(__name__)

ModulePath = Tuple[str, ...]


@dataclass
class LocalBinding:
    """let文やパラメータで束縛されたローカル変数。"""
    name: str
    type_node: Any = None
    value_node: Any = None


class DeclarationResolver(ABC):
    """参照ノードから宣言属性を引き出す名前解決の抽象インターフェース。

    分類器はこのインターフェースのみに依存する。解決できない場合は
    Noneを返し、例外は送出しない。
    """

    @abstractmethod
    def resolve(self, node) -> Optional[Declaration]:
        """識別子、パス、または呼び出し対象ノードの宣言を解決する。"""

    @abstractmethod
    def pointer_type(self, node) -> Optional[PointerType]:
        """式の型が生ポインタであればその型情報を取得する。"""

    def reference_type(self, node) -> Optional[PointerType]:
        """式の型が参照であればその型情報を取得する。"""
        return None


class SymbolResolver(DeclarationResolver):
    """構文木から構築したファイル単位のシンボルテーブルによる名前解決。

    モジュールごとのアイテム表、use宣言の別名、impl/traitのメソッド表、
    構造体フィールドの型を索引化する。クレート外のシンボルは解決しない。
    """

    # 受け手のポインタ型をそのまま返すメソッド
    POINTER_PRESERVING_METHODS: Set[str] = {
        "add", "sub", "offset",
        "byte_add", "byte_sub", "byte_offset",
        "wrapping_add", "wrapping_sub", "wrapping_offset",
        "cast",
    }

    # 生ポインタを返す標準の関数・マクロ（値は可変かどうか）
    NULL_FUNCTIONS: Dict[str, bool] = {"null": False, "null_mut": True}
    ADDRESS_MACROS: Dict[str, bool] = {"addr_of": False, "addr_of_mut": True}
    POINTER_METHODS: Dict[str, bool] = {
        "as_ptr": False,
        "as_mut_ptr": True,
        "cast_const": False,
        "cast_mut": True,
    }

    # ローカル変数の探索を打ち切るノード種別
    SCOPE_BOUNDARY_TYPES: Set[str] = {
        "source_file", "mod_item", "impl_item", "trait_item",
        "const_item", "static_item", "foreign_mod_item",
    }

    # 自動参照外しによりメソッドの持ち主を隠すラッパー型
    DEREF_WRAPPERS: Set[str] = {"Box", "Rc", "Arc", "Pin", "ManuallyDrop", "Self"}

    MAX_INFERENCE_DEPTH = 16

    def __init__(self, parsed: ParsedSource):
        """シンボル解決器を初期化し、シンボルテーブルを構築する。

        Args:
            parsed: パース済みソース
        """
        self.parsed = parsed

        self._items: Dict[ModulePath, Dict[str, Declaration]] = {(): {}}
        self._aliases: Dict[ModulePath, Dict[str, Tuple[str, ...]]] = {}
        self._globs: Dict[ModulePath, List[Tuple[str, ...]]] = {}
        self._methods: Dict[str, List[Declaration]] = {}
        self._owned_methods: Dict[Tuple[str, str], Declaration] = {}
        self._fields: Dict[str, List[Optional[PointerType]]] = {}
        # ブロック内で宣言されたアイテム（ブロックノードのid → 名前 → 宣言）
        self._block_items: Dict[int, Dict[str, Declaration]] = {}
        # このファイルで定義された型名とimpl対象の型名
        self._types: Set[str] = set()

        self._index(parsed.root, ())

        logger.debug(
            f"Indexed {parsed.path}: {len(self._items)} modules, "
            f"{sum(len(items) for items in self._items.values())} items, "
            f"{sum(len(methods) for methods in self._methods.values())} methods"
        )

    # ------------------------------------------------------------------
    # 索引構築
    # ------------------------------------------------------------------

    def _index(
        self,
        node,
        module: ModulePath,
        context: Optional[str] = None,
        owner: Optional[str] = None,
        block=None
    ) -> None:
        """アイテムを再帰的に索引化する。

        関数本体などのブロック内で宣言されたアイテムはモジュールの表ではなく
        ブロックごとの表に登録する。

        Args:
            node: 子を走査するノード
            module: 現在のモジュールパス
            context: "foreign"（externブロック内）、"impl"（impl/trait内）、またはNone
            owner: impl/traitの対象型名
            block: 直近の外側のブロックノード（モジュール直下ならNone）
        """
        for child in node.named_children:
            node_type = child.type

            if node_type == "mod_item":
                inner = module + (self.parsed.text(child.child_by_field_name("name")),)
                self._items.setdefault(inner, {})
                body = child.child_by_field_name("body")
                if body is not None:
                    self._index(body, inner)

            elif node_type == "foreign_mod_item":
                body = child.child_by_field_name("body")
                if body is not None:
                    self._index(body, module, "foreign", block=block)

            elif node_type in ("impl_item", "trait_item"):
                owner_name = self._owner_name(child)
                if owner_name:
                    self._types.add(owner_name)
                body = child.child_by_field_name("body")
                if body is not None:
                    self._index(body, module, "impl", owner_name)

            elif node_type in ("function_item", "function_signature_item"):
                self._add_function(child, module, context, owner, block)
                body = child.child_by_field_name("body")
                if body is not None:
                    self._index(body, module, block=body)

            elif node_type == "static_item":
                self._add_static(child, module, context, block)

            elif node_type == "use_declaration":
                argument = child.child_by_field_name("argument")
                if argument is not None:
                    self._add_use(argument, module, ())

            elif node_type == "field_declaration":
                self._add_field(child)

            elif node_type in ("struct_item", "enum_item", "union_item", "type_item"):
                name_node = child.child_by_field_name("name")
                if name_node is not None:
                    self._types.add(self.parsed.text(name_node))
                self._index(child, module, block=block)

            elif node_type == "block":
                self._index(child, module, block=child)

            else:
                self._index(child, module, block=block)

    def _register_item(self, declaration: Declaration, module: ModulePath, block) -> None:
        if block is not None:
            self._block_items.setdefault(block.id, {})[declaration.name] = declaration
        else:
            self._items.setdefault(module, {})[declaration.name] = declaration

    def _add_function(
        self,
        node,
        module: ModulePath,
        context: Optional[str],
        owner: Optional[str],
        block=None
    ) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return

        name = self.parsed.text(name_node)
        is_foreign = context == "foreign"
        is_unsafe = has_unsafe_modifier(node)

        if is_foreign:
            # `unsafe extern` ブロック内の `safe fn` はunsafe文脈を必要としない
            modifiers = child_of_type(node, "function_modifiers")
            if modifiers is not None and "safe" in self.parsed.text(modifiers).split():
                return
            is_unsafe = True

        declaration = Declaration(
            name=name,
            kind=DeclarationKind.METHOD if context == "impl" else DeclarationKind.FUNCTION,
            is_foreign=is_foreign,
            is_unsafe=is_unsafe,
            line=node.start_point[0] + 1,
            pointer=type_indirection(self.parsed, node.child_by_field_name("return_type"))
        )

        if context == "impl":
            self._methods.setdefault(name, []).append(declaration)
            if owner:
                self._owned_methods[(owner, name)] = declaration
        else:
            self._register_item(declaration, module, block)

    def _add_static(self, node, module: ModulePath, context: Optional[str], block=None) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return

        declaration = Declaration(
            name=self.parsed.text(name_node),
            kind=DeclarationKind.STATIC,
            is_foreign=context == "foreign",
            is_static_mut=has_child(node, "mutable_specifier"),
            line=node.start_point[0] + 1,
            pointer=type_indirection(self.parsed, node.child_by_field_name("type"))
        )
        self._register_item(declaration, module, block)

    def _add_use(self, clause, module: ModulePath, prefix: Tuple[str, ...]) -> None:
        """use宣言の別名を登録する。"""
        clause_type = clause.type
        aliases = self._aliases.setdefault(module, {})

        if clause_type == "use_as_clause":
            path = prefix + path_segments(self.parsed, clause.child_by_field_name("path"))
            aliases[self.parsed.text(clause.child_by_field_name("alias"))] = path

        elif clause_type == "scoped_use_list":
            path_node = clause.child_by_field_name("path")
            inner = prefix + path_segments(self.parsed, path_node)
            list_node = clause.child_by_field_name("list")
            if list_node is not None:
                self._add_use(list_node, module, inner)

        elif clause_type == "use_list":
            for child in clause.named_children:
                self._add_use(child, module, prefix)

        elif clause_type == "use_wildcard":
            named = clause.named_children
            path = prefix + (path_segments(self.parsed, named[0]) if named else ())
            self._globs.setdefault(module, []).append(path)

        elif clause_type == "self":
            # use foo::{self};
            if prefix:
                aliases[prefix[-1]] = prefix

        elif clause_type in ("identifier", "scoped_identifier", "crate", "super"):
            path = prefix + path_segments(self.parsed, clause)
            aliases[path[-1]] = path

    def _add_field(self, node) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        pointer = type_indirection(self.parsed, node.child_by_field_name("type"))
        self._fields.setdefault(self.parsed.text(name_node), []).append(pointer)

    def _owner_name(self, node) -> Optional[str]:
        """impl/traitの対象型名を取得する。"""
        if node.type == "trait_item":
            return self.parsed.text(node.child_by_field_name("name")) or None

        type_node = node.child_by_field_name("type")
        segments = path_segments(self.parsed, type_node)
        return segments[-1] if segments else None

    # ------------------------------------------------------------------
    # 名前解決
    # ------------------------------------------------------------------

    def resolve(self, node) -> Optional[Declaration]:
        """識別子、パス、または呼び出し対象ノードの宣言を解決する。

        Args:
            node: identifier, scoped_identifier, generic_function,
                field_expression（メソッド呼び出し対象）, call_expression

        Returns:
            Declaration、解決できない場合はNone
        """
        if node is None:
            return None

        node_type = node.type

        if node_type == "call_expression":
            return self.resolve(node.child_by_field_name("function"))

        if node_type == "generic_function":
            return self.resolve(node.child_by_field_name("function"))

        if node_type == "field_expression":
            receiver_type = self._receiver_type(node.child_by_field_name("value"))
            if receiver_type is not None and receiver_type not in self._types:
                logger.debug(f"Receiver type '{receiver_type}' is not defined in this file")
                return None
            return self._lookup_method(
                self.parsed.text(node.child_by_field_name("field"))
            )

        if node_type == "identifier":
            if self.find_local(node) is not None:
                return None
            name = self.parsed.text(node)
            declaration = self._lookup_block_item(node, name)
            if declaration is not None:
                return declaration
            return self._lookup_name(name, self._module_of(node), set())

        if node_type == "scoped_identifier":
            return self._lookup_path(
                path_segments(self.parsed, node),
                self._module_of(node),
                set(),
                self._enclosing_owner(node)
            )

        return None

    def _lookup_block_item(self, node, name: str) -> Optional[Declaration]:
        """外側のブロックで宣言されたアイテムを内側から順に検索する。"""
        parent = node.parent
        while parent is not None and parent.type != "mod_item":
            if parent.type == "block":
                declaration = self._block_items.get(parent.id, {}).get(name)
                if declaration is not None:
                    return declaration
            parent = parent.parent
        return None

    def _lookup_name(self, name: str, module: ModulePath, seen: Set) -> Optional[Declaration]:
        """単一の名前を現在のモジュールから外側に向かって検索する。"""
        scope = module
        while True:
            declaration = self._lookup_in(scope, name, seen)
            if declaration is not None:
                return declaration
            if not scope:
                return None
            scope = scope[:-1]

    def _lookup_in(self, module: ModulePath, name: str, seen: Set) -> Optional[Declaration]:
        """指定モジュール内でのみ名前を検索する（別名とglob importを含む）。"""
        declaration = self._items.get(module, {}).get(name)
        if declaration is not None:
            return declaration

        target = self._aliases.get(module, {}).get(name)
        if target is not None and (module, target) not in seen:
            seen.add((module, target))
            declaration = self._lookup_path(target, module, seen)
            if declaration is not None:
                return declaration

        for glob in self._globs.get(module, []):
            key = (module, glob + ("*",))
            if key in seen:
                continue
            seen.add(key)
            target_module = self._module_path(glob, module)
            if target_module is None:
                continue
            declaration = self._lookup_in(target_module, name, seen)
            if declaration is not None:
                return declaration

        return None

    def _lookup_path(
        self,
        segments: Tuple[str, ...],
        module: ModulePath,
        seen: Set,
        owner: Optional[str] = None
    ) -> Optional[Declaration]:
        """複数セグメントのパスを解決する。"""
        if not segments:
            return None

        if segments[0] == "Self":
            if len(segments) == 2 and owner:
                return self._owned_methods.get((owner, segments[1]))
            return None

        base, rest = self._anchor(segments, module)
        if not rest:
            return None

        if base is not None:
            target = base + rest[:-1]
            if target not in self._items and len(rest) >= 2:
                return self._owned_methods.get((rest[-2], rest[-1]))
            return self._lookup_in(target, rest[-1], seen)

        if len(rest) == 1:
            return self._lookup_name(rest[0], module, seen)

        for candidate in (module + rest[:-1], rest[:-1]):
            if candidate in self._items:
                return self._lookup_in(candidate, rest[-1], seen)

        alias = self._find_alias(rest[0], module)
        if alias is not None:
            expanded = alias + rest[1:]
            if (module, expanded) not in seen:
                seen.add((module, expanded))
                return self._lookup_path(expanded, module, seen, owner)

        if len(rest) == 2:
            return self._owned_methods.get((rest[0], rest[1]))

        return None

    def _anchor(
        self,
        segments: Tuple[str, ...],
        module: ModulePath
    ) -> Tuple[Optional[ModulePath], Tuple[str, ...]]:
        """crate/self/superで始まるパスの基点モジュールを求める。

        Returns:
            (基点モジュール、残りのセグメント)。相対パスの場合の基点はNone
        """
        head = segments[0]
        if head == "crate":
            return (), segments[1:]
        if head == "self":
            return module, segments[1:]
        if head == "super":
            base = module
            rest = segments
            while rest and rest[0] == "super":
                base = base[:-1]
                rest = rest[1:]
            return base, rest
        return None, segments

    def _module_path(self, segments: Tuple[str, ...], module: ModulePath) -> Optional[ModulePath]:
        """パスが既知のモジュールを指していればそのモジュールパスを返す。"""
        if not segments:
            return None

        base, rest = self._anchor(segments, module)
        if base is not None:
            candidate = base + rest
            return candidate if candidate in self._items else None

        for candidate in (module + rest, rest):
            if candidate in self._items:
                return candidate
        return None

    def _find_alias(self, name: str, module: ModulePath) -> Optional[Tuple[str, ...]]:
        scope = module
        while True:
            target = self._aliases.get(scope, {}).get(name)
            if target is not None:
                return target
            if not scope:
                return None
            scope = scope[:-1]

    def _lookup_method(self, name: str) -> Optional[Declaration]:
        """メソッド名から宣言を解決する。

        同名メソッドのunsafe性が全て一致する場合のみ解決する。
        """
        candidates = self._methods.get(name, [])
        if not candidates:
            return None
        if len({candidate.is_unsafe for candidate in candidates}) != 1:
            logger.debug(f"Ambiguous method '{name}' left unresolved")
            return None
        return candidates[0]

    def _receiver_type(self, receiver) -> Optional[str]:
        """ローカル変数のレシーバーの型名を推定する。

        型注釈があればその最後のセグメント、なければ ``Type::new()`` のような
        初期化式のパスの型部分を使う。推定できない場合はNone。
        """
        if receiver is None or receiver.type != "identifier":
            return None
        binding = self.find_local(receiver)
        if binding is None:
            return None

        segments: Tuple[str, ...] = ()
        type_node = binding.type_node
        while type_node is not None and type_node.type == "reference_type":
            type_node = type_node.child_by_field_name("type")

        if type_node is not None:
            if type_node.type in ("type_identifier", "scoped_type_identifier", "generic_type"):
                segments = path_segments(self.parsed, type_node)
        elif binding.value_node is not None and binding.value_node.type == "call_expression":
            path = path_segments(
                self.parsed, binding.value_node.child_by_field_name("function")
            )
            segments = path[:-1]

        if not segments or segments[-1] in self.DEREF_WRAPPERS:
            return None
        return segments[-1]

    def _module_of(self, node) -> ModulePath:
        names = []
        parent = node.parent
        while parent is not None:
            if parent.type == "mod_item":
                names.append(self.parsed.text(parent.child_by_field_name("name")))
            parent = parent.parent
        return tuple(reversed(names))

    def _enclosing_owner(self, node) -> Optional[str]:
        parent = node.parent
        while parent is not None:
            if parent.type in ("impl_item", "trait_item"):
                return self._owner_name(parent)
            parent = parent.parent
        return None

    # ------------------------------------------------------------------
    # ローカル変数
    # ------------------------------------------------------------------

    def find_local(self, identifier) -> Optional[LocalBinding]:
        """識別子を束縛しているローカル変数を検索する。

        Args:
            identifier: 参照位置のidentifierノード

        Returns:
            LocalBinding、ローカル変数でない場合はNone
        """
        name = self.parsed.text(identifier)
        current = identifier
        parent = current.parent

        while parent is not None:
            parent_type = parent.type

            if parent_type == "block":
                binding = self._binding_in_block(parent, current, name)
                if binding is not None:
                    return binding

            elif parent_type in ("function_item", "closure_expression"):
                binding = self._binding_in_parameters(parent, name)
                if binding is not None:
                    return binding
                # アイテムは外側のローカル変数を捕捉しない
                if parent_type == "function_item":
                    return None

            elif parent_type == "for_expression":
                if is_field(parent, current, "body") and name in self._pattern_names(
                    parent.child_by_field_name("pattern")
                ):
                    return LocalBinding(name)

            elif parent_type == "match_arm":
                if not is_field(parent, current, "pattern") and name in self._pattern_names(
                    parent.child_by_field_name("pattern")
                ):
                    return LocalBinding(name)

            elif parent_type in ("if_expression", "while_expression"):
                condition = parent.child_by_field_name("condition")
                if (condition is not None and condition.id != current.id
                        and name in self._let_condition_names(condition)):
                    return LocalBinding(name)

            elif parent_type in self.SCOPE_BOUNDARY_TYPES:
                return None

            current = parent
            parent = parent.parent

        return None

    def _binding_in_block(self, block, current, name: str) -> Optional[LocalBinding]:
        found = None
        for statement in block.named_children:
            if statement.start_byte >= current.start_byte:
                break
            if statement.type != "let_declaration":
                continue
            pattern = statement.child_by_field_name("pattern")
            if name not in self._pattern_names(pattern):
                continue
            if pattern.type == "identifier":
                found = LocalBinding(
                    name,
                    statement.child_by_field_name("type"),
                    statement.child_by_field_name("value")
                )
            else:
                found = LocalBinding(name)
        return found

    def _binding_in_parameters(self, function, name: str) -> Optional[LocalBinding]:
        parameters = function.child_by_field_name("parameters")
        if parameters is None:
            return None

        for parameter in parameters.named_children:
            if parameter.type == "parameter":
                pattern = parameter.child_by_field_name("pattern")
                if name in self._pattern_names(pattern):
                    type_node = None
                    if pattern is not None and pattern.type == "identifier":
                        type_node = parameter.child_by_field_name("type")
                    return LocalBinding(name, type_node)
            elif parameter.type in ("self_parameter", "attribute_item", "variadic_parameter"):
                continue
            elif name in self._pattern_names(parameter):
                return LocalBinding(name)

        return None

    def _pattern_names(self, pattern) -> Set[str]:
        """パターンが束縛する変数名を収集する。"""
        names: Set[str] = set()
        if pattern is None:
            return names

        stack = [pattern]
        while stack:
            node = stack.pop()
            node_type = node.type
            if node_type == "identifier":
                parent = node.parent
                if (parent is not None
                        and parent.type in ("tuple_struct_pattern", "struct_pattern")
                        and is_field(parent, node, "type")):
                    continue
                names.add(self.parsed.text(node))
            elif node_type == "shorthand_field_identifier":
                names.add(self.parsed.text(node))
            elif node_type in ("scoped_identifier", "scoped_type_identifier", "type_identifier"):
                continue
            else:
                stack.extend(node.named_children)

        return names

    def _let_condition_names(self, condition) -> Set[str]:
        names: Set[str] = set()
        stack = [condition]
        while stack:
            node = stack.pop()
            if node.type == "let_condition":
                names |= self._pattern_names(node.child_by_field_name("pattern"))
            elif node.type == "let_chain":
                stack.extend(node.named_children)
        return names

    # ------------------------------------------------------------------
    # ポインタ型の推定
    # ------------------------------------------------------------------

    def pointer_type(self, node) -> Optional[PointerType]:
        """式の型が生ポインタであればその型情報を取得する。"""
        indirection = self._indirection(node, 0)
        if indirection is not None and indirection.is_raw:
            return indirection
        return None

    def reference_type(self, node) -> Optional[PointerType]:
        """式の型が参照であればその型情報を取得する。"""
        indirection = self._indirection(node, 0)
        if indirection is not None and not indirection.is_raw:
            return indirection
        return None

    def _indirection(self, node, depth: int) -> Optional[PointerType]:
        if node is None or depth > self.MAX_INFERENCE_DEPTH:
            return None

        node_type = node.type

        if node_type == "parenthesized_expression":
            inner = node.named_children
            return self._indirection(inner[0], depth + 1) if inner else None

        if node_type == "type_cast_expression":
            return type_indirection(self.parsed, node.child_by_field_name("type"))

        if node_type == "reference_expression":
            value = node.child_by_field_name("value")
            return PointerType(
                mutable=has_child(node, "mutable_specifier"),
                target="_" if value is None else "typeof " + self.parsed.text(value),
                is_raw=has_child(node, "raw")
            )

        if node_type == "identifier":
            binding = self.find_local(node)
            if binding is not None:
                if binding.type_node is not None:
                    return type_indirection(self.parsed, binding.type_node)
                return self._indirection(binding.value_node, depth + 1)
            return self._static_indirection(node)

        if node_type == "scoped_identifier":
            return self._static_indirection(node)

        if node_type == "field_expression":
            return self._field_indirection(
                self.parsed.text(node.child_by_field_name("field"))
            )

        if node_type == "call_expression":
            return self._call_indirection(node, depth)

        if node_type == "macro_invocation":
            segments = path_segments(self.parsed, node.child_by_field_name("macro"))
            if segments and segments[-1] in self.ADDRESS_MACROS:
                return PointerType(mutable=self.ADDRESS_MACROS[segments[-1]])

        return None

    def _static_indirection(self, node) -> Optional[PointerType]:
        declaration = self.resolve(node)
        if declaration is None or declaration.kind is not DeclarationKind.STATIC:
            return None
        return declaration.pointer

    def _field_indirection(self, name: str) -> Optional[PointerType]:
        """同名フィールドの型が全て一致する場合のみその型を返す。"""
        types = self._fields.get(name, [])
        if not types or types[0] is None:
            return None
        if any(other != types[0] for other in types[1:]):
            return None
        return types[0]

    def _call_indirection(self, node, depth: int) -> Optional[PointerType]:
        function = node.child_by_field_name("function")
        if function is None:
            return None

        if function.type == "field_expression":
            method = self.parsed.text(function.child_by_field_name("field"))
            if method in self.POINTER_METHODS:
                return PointerType(mutable=self.POINTER_METHODS[method])
            if method in self.POINTER_PRESERVING_METHODS:
                receiver = self._indirection(function.child_by_field_name("value"), depth + 1)
                if receiver is not None and receiver.is_raw:
                    return receiver
                return None
            declaration = self._lookup_method(method)
            return declaration.pointer if declaration is not None else None

        declaration = self.resolve(function)
        if declaration is not None:
            return declaration.pointer if declaration.is_callable else None

        segments = path_segments(self.parsed, function)
        if segments and segments[-1] in self.NULL_FUNCTIONS:
            if len(segments) == 1 or segments[-2] == "ptr":
                return PointerType(mutable=self.NULL_FUNCTIONS[segments[-1]])

        return None
