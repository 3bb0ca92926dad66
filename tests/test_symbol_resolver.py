"""シンボル解決のテスト。"""

from unsafe_audit.analyzer.rust_parser import RustParser
from unsafe_audit.analyzer.symbol_resolver import SymbolResolver
from unsafe_audit.models.declaration import DeclarationKind


def build(source: str):
    parsed = RustParser().parse_string(source, "test.rs")
    return parsed, SymbolResolver(parsed)


def find_nodes(parsed, node_type: str, text: str):
    """指定した種別とテキストを持つノードをソース順に収集する。"""
    found = []
    stack = [parsed.root]
    while stack:
        node = stack.pop()
        if node.type == node_type and parsed.text(node) == text:
            found.append(node)
        stack.extend(reversed(node.children))
    return found


class TestItemResolution:
    """アイテム解決のテスト。"""

    def test_foreign_function(self):
        """externブロック内の関数は外部かつunsafe。"""
        parsed, resolver = build(
            "extern \"C\" { fn abort(); }\n"
            "fn main() { abort(); }\n"
        )
        call = find_nodes(parsed, "call_expression", "abort()")[0]

        declaration = resolver.resolve(call)
        assert declaration is not None
        assert declaration.kind is DeclarationKind.FUNCTION
        assert declaration.is_foreign
        assert declaration.is_unsafe

    def test_static_mut(self):
        """static mutの解決。"""
        parsed, resolver = build(
            "static mut COUNT: u32 = 0;\n"
            "static NAME: &str = \"x\";\n"
            "fn main() { let a = COUNT; let b = NAME; }\n"
        )
        count = find_nodes(parsed, "identifier", "COUNT")[-1]
        name = find_nodes(parsed, "identifier", "NAME")[-1]

        assert resolver.resolve(count).is_static_mut
        assert not resolver.resolve(name).is_static_mut
        assert resolver.resolve(name).kind is DeclarationKind.STATIC

    def test_foreign_static(self):
        """externブロック内の静的変数は外部の静的変数。"""
        parsed, resolver = build(
            "extern \"C\" { static ERRNO: i32; }\n"
            "fn main() { let e = ERRNO; }\n"
        )
        errno = find_nodes(parsed, "identifier", "ERRNO")[-1]

        declaration = resolver.resolve(errno)
        assert declaration.kind is DeclarationKind.STATIC
        assert declaration.is_foreign
        assert not declaration.is_static_mut

    def test_block_item_is_scoped_to_block(self):
        """関数本体内のアイテムはそのブロック内でのみ見える。"""
        parsed, resolver = build(
            "unsafe fn helper() {}\n"
            "fn other() {\n"
            "    fn helper() {}\n"
            "    helper();\n"
            "}\n"
            "fn main() { helper(); }\n"
        )
        inner_call, outer_call = find_nodes(parsed, "call_expression", "helper()")

        assert not resolver.resolve(inner_call).is_unsafe
        assert resolver.resolve(outer_call).is_unsafe

    def test_nested_module_lookup_goes_outward(self):
        """内側のモジュールで見つからない名前は外側のモジュールから検索する。"""
        parsed, resolver = build(
            "unsafe fn top() {}\n"
            "mod inner {\n"
            "    fn f() { top(); }\n"
            "}\n"
        )
        call = find_nodes(parsed, "call_expression", "top()")[0]

        assert resolver.resolve(call).is_unsafe

    def test_crate_and_super_paths(self):
        """crate::とsuper::で始まるパスの解決。"""
        parsed, resolver = build(
            "unsafe fn top() {}\n"
            "mod a {\n"
            "    pub unsafe fn helper() {}\n"
            "    mod b {\n"
            "        fn f() { super::helper(); crate::top(); }\n"
            "    }\n"
            "}\n"
        )
        helper = find_nodes(parsed, "call_expression", "super::helper()")[0]
        top = find_nodes(parsed, "call_expression", "crate::top()")[0]

        assert resolver.resolve(helper).name == "helper"
        assert resolver.resolve(top).name == "top"

    def test_use_list_alias(self):
        """use宣言のリストと別名の解決。"""
        parsed, resolver = build(
            "mod ffi {\n"
            "    extern \"C\" { pub fn open(); pub fn close(); }\n"
            "}\n"
            "use ffi::{open, close as shut};\n"
            "fn main() { open(); shut(); }\n"
        )
        open_call = find_nodes(parsed, "call_expression", "open()")[0]
        shut_call = find_nodes(parsed, "call_expression", "shut()")[0]

        assert resolver.resolve(open_call).name == "open"
        assert resolver.resolve(shut_call).name == "close"

    def test_glob_import(self):
        """glob importの解決。"""
        parsed, resolver = build(
            "mod ffi {\n"
            "    extern \"C\" { pub fn run(); }\n"
            "}\n"
            "use ffi::*;\n"
            "fn main() { run(); }\n"
        )
        call = find_nodes(parsed, "call_expression", "run()")[0]

        assert resolver.resolve(call).is_foreign

    def test_external_path_is_gap(self):
        """クレート外のパスは解決しない。"""
        parsed, resolver = build("fn main() { libc::abort(); }\n")
        call = find_nodes(parsed, "call_expression", "libc::abort()")[0]

        assert resolver.resolve(call) is None


class TestMethodResolution:
    """メソッド解決のテスト。"""

    def test_self_path(self):
        """Self::経由の関連関数の解決。"""
        parsed, resolver = build(
            "struct S;\n"
            "impl S {\n"
            "    unsafe fn raw() {}\n"
            "    fn f() { unsafe { Self::raw(); } }\n"
            "}\n"
        )
        call = find_nodes(parsed, "call_expression", "Self::raw()")[0]

        declaration = resolver.resolve(call)
        assert declaration.kind is DeclarationKind.METHOD
        assert declaration.is_unsafe

    def test_ambiguous_method_is_gap(self):
        """unsafe性が異なる同名メソッドは解決しない。"""
        parsed, resolver = build(
            "struct A;\n"
            "struct B;\n"
            "impl A { unsafe fn go(&self) {} }\n"
            "impl B { fn go(&self) {} }\n"
            "fn main() { let a = A; a.go(); }\n"
        )
        call = find_nodes(parsed, "call_expression", "a.go()")[0]

        assert resolver.resolve(call) is None

    def test_foreign_receiver_type_is_gap(self):
        """レシーバーの型がファイル外で定義されている場合は解決しない。"""
        parsed, resolver = build(
            "struct S;\n"
            "impl S { unsafe fn get(&self) {} }\n"
            "fn main() {\n"
            "    let v: Vec<u8> = Vec::new();\n"
            "    let s: &S = &S;\n"
            "    v.get();\n"
            "    s.get();\n"
            "}\n"
        )
        foreign_call = find_nodes(parsed, "call_expression", "v.get()")[0]
        local_call = find_nodes(parsed, "call_expression", "s.get()")[0]

        assert resolver.resolve(foreign_call) is None
        assert resolver.resolve(local_call).is_unsafe


class TestLocalBindings:
    """ローカル変数の検出テスト。"""

    def test_let_binding_found(self):
        """let文で束縛された変数。"""
        parsed, resolver = build("fn main() { let x = 1; let y = x; }\n")
        use_site = find_nodes(parsed, "identifier", "x")[-1]

        binding = resolver.find_local(use_site)
        assert binding is not None
        assert binding.name == "x"

    def test_binding_after_use_not_found(self):
        """使用位置より後のlet文は束縛にならない。"""
        parsed, resolver = build(
            "static mut x: i32 = 0;\n"
            "fn main() { let y = x; let x = 1; }\n"
        )
        use_site = find_nodes(parsed, "identifier", "x")[1]

        assert resolver.find_local(use_site) is None
        assert resolver.resolve(use_site).is_static_mut

    def test_for_and_match_patterns(self):
        """forとmatchのパターン変数。"""
        parsed, resolver = build(
            "fn main() {\n"
            "    for item in 0..3 { let a = item; }\n"
            "    match Some(1) { Some(v) => { let b = v; } None => {} }\n"
            "}\n"
        )
        item = find_nodes(parsed, "identifier", "item")[-1]
        value = find_nodes(parsed, "identifier", "v")[-1]

        assert resolver.find_local(item) is not None
        assert resolver.find_local(value) is not None

    def test_if_let_binding(self):
        """if letで束縛された変数。"""
        parsed, resolver = build(
            "fn main() {\n"
            "    if let Some(p) = None::<*const u8> { let q = p; }\n"
            "}\n"
        )
        use_site = find_nodes(parsed, "identifier", "p")[-1]

        assert resolver.find_local(use_site) is not None

    def test_nested_function_does_not_capture(self):
        """入れ子の関数は外側のローカル変数を捕捉しない。"""
        parsed, resolver = build(
            "static mut X: i32 = 0;\n"
            "fn main() {\n"
            "    let X = 1;\n"
            "    fn inner() { let y = X; }\n"
            "}\n"
        )
        use_site = find_nodes(parsed, "identifier", "X")[-1]

        assert resolver.find_local(use_site) is None
        assert resolver.resolve(use_site).is_static_mut


class TestPointerInference:
    """ポインタ型推定のテスト。"""

    def test_null_mut(self):
        """ptr::null_mutは*mutポインタ。"""
        parsed, resolver = build("fn main() { let p = std::ptr::null_mut::<u8>(); }\n")
        call = find_nodes(parsed, "call_expression", "std::ptr::null_mut::<u8>()")[0]

        pointer = resolver.pointer_type(call)
        assert pointer is not None
        assert pointer.mutable

    def test_reference_is_not_pointer(self):
        """参照は生ポインタではない。"""
        parsed, resolver = build("fn main() { let x = 1; let r = &mut x; }\n")
        expression = find_nodes(parsed, "reference_expression", "&mut x")[0]

        assert resolver.pointer_type(expression) is None
        assert resolver.reference_type(expression).mutable

    def test_function_return_type(self):
        """戻り値がポインタ型の関数呼び出し。"""
        parsed, resolver = build(
            "extern \"C\" { fn malloc(size: usize) -> *mut u8; }\n"
            "fn main() { let p = unsafe { malloc(4) }; }\n"
        )
        call = find_nodes(parsed, "call_expression", "malloc(4)")[0]

        pointer = resolver.pointer_type(call)
        assert pointer is not None
        assert pointer.mutable

    def test_struct_field(self):
        """ポインタ型フィールドのアクセス。"""
        parsed, resolver = build(
            "struct Node { next: *mut Node }\n"
            "fn f(n: Node) { let p = n.next; }\n"
        )
        access = find_nodes(parsed, "field_expression", "n.next")[0]

        assert resolver.pointer_type(access) is not None

    def test_pointer_arithmetic_preserves_type(self):
        """addメソッドは受け手のポインタ型を保つ。"""
        parsed, resolver = build(
            "fn f(p: *const u8) { let q = p.add(1); }\n"
        )
        call = find_nodes(parsed, "call_expression", "p.add(1)")[0]

        pointer = resolver.pointer_type(call)
        assert pointer is not None
        assert not pointer.mutable

    def test_unknown_expression(self):
        """型が不明な式はポインタとみなさない。"""
        parsed, resolver = build("fn f(v: Vec<u8>) { let n = v.len(); }\n")
        call = find_nodes(parsed, "call_expression", "v.len()")[0]

        assert resolver.pointer_type(call) is None
