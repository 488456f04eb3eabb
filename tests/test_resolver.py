"""Resolution tests: hoisting, temporal dead zone, shadowing and class members."""
from lineage.analyzer.models import DiagnosticCode, ResolutionPath, ScopeKind

from conftest import only_decl, refs_named


def test_end_to_end_example(analyze):
    """Closures resolve outward; chains record every hop."""
    graph = analyze("const g = 1; function f(){ let a = g; function h(){ return a*2; } return h(); }")

    g = only_decl(graph, 'g')
    a = only_decl(graph, 'a')
    assert g.scope_id == graph.global_scope.id
    assert graph.scope(a.scope_id).label == 'f'

    g_ref = refs_named(graph, 'g')[0]
    assert graph.scope(g_ref.scope_id).label == 'f'
    assert graph.declaration_of(g_ref) == g
    assert graph.chain_of(g_ref) == [a.scope_id, g.scope_id]

    a_ref = refs_named(graph, 'a')[0]
    assert graph.scope(a_ref.scope_id).label == 'h'
    assert graph.declaration_of(a_ref) == a
    chain = graph.chain_of(a_ref)
    assert chain == [a_ref.scope_id, a.scope_id]
    assert graph.edge_of(a_ref).hops == 1

    assert graph.unresolved() == []


def test_class_member_resolves_through_receiver(analyze):
    graph = analyze("class C { constructor(){ this.v = 1; } m(){ return this.v; } }")

    v = only_decl(graph, 'v')
    assert graph.scope(v.scope_id).kind == ScopeKind.CLASS_BODY
    assert v.construct == 'this-assignment'

    read = refs_named(graph, 'v')[0]
    assert read.qualified
    assert graph.scope(read.scope_id).label == 'm'
    edge = graph.edge_of(read)
    assert edge.path == ResolutionPath.MEMBER
    assert edge.declaration_id == v.id
    assert edge.chain == (read.scope_id, v.scope_id)


class TestHoisting:
    """Function-scoped and hoisted bindings are visible before their site."""

    def test_call_before_function_declaration(self, analyze):
        graph = analyze("run(); function run() {}")
        run = only_decl(graph, 'run')
        assert graph.declaration_of(refs_named(graph, 'run')[0]) == run

    def test_var_read_before_declaration(self, analyze):
        graph = analyze("function f() { log(v); var v = 1; }")
        v = only_decl(graph, 'v')
        assert graph.references_of(v) == refs_named(graph, 'v')
        assert not any(d.code == DiagnosticCode.TEMPORAL_DEAD_ZONE for d in graph.diagnostics)

    def test_hoisted_from_nested_block(self, analyze):
        graph = analyze("function outer() { helper(); if (ok) { let t = 1; function helper() {} } }")
        helper = only_decl(graph, 'helper')
        assert graph.declaration_of(refs_named(graph, 'helper')[0]) == helper


class TestTemporalDeadZone:
    """Block-scoped bindings are invisible before their declaration."""

    def test_falls_back_to_outer_declaration(self, analyze):
        graph = analyze("""
let x = 1;
{
  use(x);
  let x = 2;
}
""")
        outer, inner = graph.find('x')
        assert outer.scope_id == 0
        early = refs_named(graph, 'x')[0]
        assert graph.declaration_of(early) == outer
        assert graph.chain_of(early) == [inner.scope_id, outer.scope_id]
        hints = [d for d in graph.diagnostics if d.code == DiagnosticCode.TEMPORAL_DEAD_ZONE]
        assert len(hints) == 1 and hints[0].declaration_id == inner.id

    def test_unresolved_without_outer_declaration(self, analyze):
        graph = analyze("{ use(y); let y = 2; }")
        early = refs_named(graph, 'y')[0]
        assert graph.declaration_of(early) is None
        assert early in graph.unresolved()

    def test_initializer_cannot_see_itself(self, analyze):
        graph = analyze("let z = z + 1;")
        assert refs_named(graph, 'z')[0] in graph.unresolved()

    def test_closure_sees_later_binding(self, analyze):
        """A nested function runs after the enclosing block has initialised."""
        graph = analyze("function read() { return late; } const late = 5;")
        late = only_decl(graph, 'late')
        assert graph.declaration_of(refs_named(graph, 'late')[0]) == late

    def test_use_after_declaration_resolves(self, analyze):
        graph = analyze("const k = 1; use(k);")
        assert graph.declaration_of(refs_named(graph, 'k')[0]) == only_decl(graph, 'k')


class TestShadowing:

    def test_innermost_declaration_wins(self, analyze):
        graph = analyze("""
let x = 'outer';
function f() {
  let x = 'inner';
  return x;
}
use(x);
""")
        outer, inner = graph.find('x')
        inner_ref, outer_ref = refs_named(graph, 'x')
        assert graph.declaration_of(inner_ref) == inner
        assert graph.declaration_of(outer_ref) == outer

    def test_parameter_shadows_global(self, analyze):
        graph = analyze("const n = 1; function f(n) { return n; }")
        param = [d for d in graph.find('n') if graph.scope(d.scope_id).label == 'f'][0]
        assert graph.declaration_of(refs_named(graph, 'n')[0]) == param

    def test_named_function_expression_binds_only_inside(self, analyze):
        graph = analyze("const fact = function self(n) { return n ? n * self(n - 1) : 1; }; self;")
        inner_ref, outer_ref = refs_named(graph, 'self')
        assert graph.declaration_of(inner_ref).name == 'self'
        assert graph.declaration_of(outer_ref) is None


class TestMemberResolution:
    """Member-qualified lookups go to the class body, bare names never do."""

    def test_bare_name_ignores_class_member(self, analyze):
        graph = analyze("let v = 1; class C { v = 2; m() { return v + this.v; } }")
        global_v, member_v = graph.find('v')
        bare, qualified = refs_named(graph, 'v')
        assert graph.declaration_of(bare) == global_v
        assert graph.edge_of(bare).path == ResolutionPath.LEXICAL
        assert graph.declaration_of(qualified) == member_v
        assert graph.edge_of(qualified).path == ResolutionPath.MEMBER

    def test_missing_member_falls_back_to_lexical(self, analyze):
        graph = analyze("let v = 1; class C { m() { return this.v; } }")
        v = only_decl(graph, 'v')
        qualified = refs_named(graph, 'v')[0]
        edge = graph.edge_of(qualified)
        assert edge.declaration_id == v.id
        assert edge.path == ResolutionPath.LEXICAL
        assert len(edge.chain) == 3, "method -> class body -> global"

    def test_read_before_write_site(self, analyze):
        """A member read lexically before its first write still resolves."""
        graph = analyze("class C { show() { return this.v; } init() { this.v = 1; } }")
        v = only_decl(graph, 'v')
        assert v.span.line == 1
        assert graph.declaration_of(refs_named(graph, 'v')[0]) == v

    def test_explicit_field_beats_write_site(self, analyze):
        graph = analyze("class C { constructor() { this.v = 1; } v = 0; }")
        v = only_decl(graph, 'v')
        assert v.construct == 'field'
        writes = [r for r in graph.references_of(v) if r.write]
        assert len(writes) == 1

    def test_method_call_through_receiver(self, analyze):
        graph = analyze("class C { a() { return this.b(); } b() { return 1; } }")
        b = only_decl(graph, 'b')
        assert graph.references_of(b) == refs_named(graph, 'b')


class TestWrites:

    def test_assignments_are_write_references(self, analyze):
        graph = analyze("let n = 0; n = 5; n += 1; n++; [n] = [1];")
        n = only_decl(graph, 'n')
        refs = graph.references_of(n)
        assert len(refs) == 4
        assert all(r.write for r in refs)

    def test_unqualified_assignment_to_undeclared_is_unresolved(self, analyze):
        graph = analyze("function f() { leaked = 1; }")
        leaked = refs_named(graph, 'leaked')[0]
        assert leaked.write
        assert leaked in graph.unresolved()


class TestFieldInitializers:
    """Field initializers run after the class is defined, like method bodies."""

    def test_static_field_sees_own_class(self, analyze):
        graph = analyze("class A { static inst = new A(); }")
        ref = refs_named(graph, 'A')[0]
        assert graph.declaration_of(ref) == only_decl(graph, 'A')
        assert graph.qualified_name(ref.scope_id) == 'A::inst'
        assert graph.unresolved() == []

    def test_field_sees_later_binding(self, analyze):
        graph = analyze("class C { x = later; } const later = 1;")
        ref = refs_named(graph, 'later')[0]
        assert graph.declaration_of(ref) == only_decl(graph, 'later')
        assert DiagnosticCode.TEMPORAL_DEAD_ZONE not in {d.code for d in graph.diagnostics}

    def test_computed_key_is_evaluated_eagerly(self, analyze):
        graph = analyze("class C { [key] = 1; } const key = 'k';")
        ref = refs_named(graph, 'key')[0]
        assert graph.declaration_of(ref) is None
        assert DiagnosticCode.TEMPORAL_DEAD_ZONE in {d.code for d in graph.diagnostics}


class TestStaticMembers:
    """Static and instance members live in separate namespaces."""

    def test_same_name_is_not_a_duplicate(self, analyze):
        graph = analyze(
            "class C { static x = 1; x = 2; "
            "static s() { return this.x; } m() { return this.x; } }"
        )
        assert graph.duplicates() == []

        static_x, instance_x = sorted(graph.find('x'), key=lambda d: d.span.start_byte)
        assert static_x.static and not instance_x.static
        from_static, from_instance = refs_named(graph, 'x')
        assert graph.declaration_of(from_static) == static_x
        assert graph.declaration_of(from_instance) == instance_x

    def test_static_write_site_synthesizes_static_member(self, analyze):
        graph = analyze(
            "class C { static init() { this.cache = 1; } "
            "static read() { return this.cache; } m() { return this.cache; } }"
        )
        cache = only_decl(graph, 'cache')
        assert cache.static
        static_read, instance_read = [r for r in refs_named(graph, 'cache') if not r.write]
        assert graph.declaration_of(static_read) == cache
        assert graph.declaration_of(instance_read) is None

    def test_static_block_uses_static_members(self, analyze):
        graph = analyze("class C { static n = 1; static { this.n; } }")
        n = only_decl(graph, 'n')
        assert graph.references_of(n) == refs_named(graph, 'n')
