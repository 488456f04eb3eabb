"""Lineage graph assembly and queries using NetworkX.

The graph stores three node families keyed by tuples:
``('scope', id)``, ``('decl', id)`` and ``('ref', id)``; edges are labelled
``contains`` (scope to child scope), ``declares`` (scope to declaration) and
``resolves_to`` (reference to declaration, carrying the scope chain).
"""
import logging
from typing import Any, Dict, List, Optional, Union

import networkx as nx

from .errors import InconsistentGraph
from .models import (
    Declaration,
    Diagnostic,
    DiagnosticCode,
    LineageEdge,
    Reference,
    Scope,
    ScopeKind,
    ScopeTree,
)

logger = logging.getLogger(__name__)

DeclarationLike = Union[Declaration, int]
ReferenceLike = Union[Reference, int]


def _scope_node(scope_id: int):
    return ('scope', scope_id)


def _decl_node(declaration_id: int):
    return ('decl', declaration_id)


def _ref_node(reference_id: int):
    return ('ref', reference_id)


class LineageGraphBuilder:
    """Merge a scope tree and resolved edges into a frozen LineageGraph."""

    def __init__(self, tree: ScopeTree):
        self.tree = tree
        self.graph = nx.DiGraph()

    def build(self, edges: List[LineageEdge], diagnostics: Optional[List[Diagnostic]] = None) -> 'LineageGraph':
        """Assemble the graph.

        Raises:
            InconsistentGraph: If an edge names an unknown reference,
                declaration or scope, or its chain does not run from the
                reference's scope up to the declaration's scope.
        """
        tree = self.tree

        for scope in tree.scopes:
            self.graph.add_node(_scope_node(scope.id), kind=scope.kind.value, label=scope.label)
            if scope.parent_id is not None:
                self.graph.add_edge(_scope_node(scope.parent_id), _scope_node(scope.id), relation='contains')

        for declaration in tree.declarations:
            if not 0 <= declaration.scope_id < len(tree.scopes):
                raise InconsistentGraph(f"Declaration {declaration.id} names unknown scope {declaration.scope_id}")
            self.graph.add_node(_decl_node(declaration.id), name=declaration.name, kind=declaration.kind.value)
            self.graph.add_edge(_scope_node(declaration.scope_id), _decl_node(declaration.id), relation='declares')

        for reference in tree.references:
            self.graph.add_node(_ref_node(reference.id), name=reference.name, scope=reference.scope_id)

        for edge in edges:
            self._check_edge(edge)
            self.graph.add_edge(_ref_node(edge.reference_id), _decl_node(edge.declaration_id),
                                relation='resolves_to', chain=edge.chain, path=edge.path.value)

        all_diagnostics = list(tree.diagnostics) + list(diagnostics or [])
        logger.info("Assembled lineage graph: %d scopes, %d declarations, %d edges, %d diagnostics",
                    len(tree.scopes), len(tree.declarations), len(edges), len(all_diagnostics))
        return LineageGraph(tree, edges, all_diagnostics, nx.freeze(self.graph))

    def _check_edge(self, edge: LineageEdge):
        tree = self.tree
        if not 0 <= edge.reference_id < len(tree.references):
            raise InconsistentGraph(f"Edge names unknown reference {edge.reference_id}")
        if not 0 <= edge.declaration_id < len(tree.declarations):
            raise InconsistentGraph(f"Edge names unknown declaration {edge.declaration_id}")
        if self.graph.out_degree(_ref_node(edge.reference_id)) > 0:
            raise InconsistentGraph(f"Reference {edge.reference_id} resolved twice")
        for scope_id in edge.chain:
            if not 0 <= scope_id < len(tree.scopes):
                raise InconsistentGraph(f"Edge chain names unknown scope {scope_id}")

        reference = tree.references[edge.reference_id]
        declaration = tree.declarations[edge.declaration_id]
        if not edge.chain or edge.chain[0] != reference.scope_id or edge.chain[-1] != declaration.scope_id:
            raise InconsistentGraph(
                f"Chain {edge.chain} does not run from scope {reference.scope_id} "
                f"to scope {declaration.scope_id}"
            )
        for child, parent in zip(edge.chain, edge.chain[1:]):
            if tree.scopes[child].parent_id != parent:
                raise InconsistentGraph(f"Chain {edge.chain} leaves the scope tree at {child}")


class LineageGraph:
    """Immutable result of one analysis run.

    All query methods are pure reads. Declarations and references may be
    passed either as records or as their integer ids.
    """

    def __init__(self, tree: ScopeTree, edges: List[LineageEdge], diagnostics: List[Diagnostic],
                 graph: nx.DiGraph):
        self._tree = tree
        self._edges = tuple(edges)
        self._diagnostics = tuple(diagnostics)
        self.graph = graph

        self._edge_by_reference: Dict[int, LineageEdge] = {}
        self._edges_by_declaration: Dict[int, List[LineageEdge]] = {}
        for edge in self._edges:
            self._edge_by_reference[edge.reference_id] = edge
            self._edges_by_declaration.setdefault(edge.declaration_id, []).append(edge)

    # -- whole-graph views -------------------------------------------------

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def scopes(self) -> List[Scope]:
        return list(self._tree.scopes)

    def declarations(self) -> List[Declaration]:
        return list(self._tree.declarations)

    def references(self) -> List[Reference]:
        return list(self._tree.references)

    def edges(self) -> List[LineageEdge]:
        return list(self._edges)

    # -- lookups -----------------------------------------------------------

    def scope(self, scope_id: int) -> Scope:
        return self._tree.scopes[scope_id]

    @property
    def global_scope(self) -> Scope:
        return self._tree.scopes[0]

    def declaration(self, declaration: DeclarationLike) -> Declaration:
        return self._tree.declarations[self._declaration_id(declaration)]

    def reference(self, reference: ReferenceLike) -> Reference:
        return self._tree.references[self._reference_id(reference)]

    def find(self, name: str) -> List[Declaration]:
        """All declarations named ``name``, outermost scope first."""
        matches = [d for d in self._tree.declarations if d.name == name]
        return sorted(matches, key=lambda d: (self.depth(d.scope_id), d.id))

    # -- core queries ------------------------------------------------------

    def declarations_of(self, scope: Union[Scope, int]) -> List[Declaration]:
        """Declarations owned directly by a scope, in declaration order."""
        scope_id = scope.id if isinstance(scope, Scope) else scope
        record = self._tree.scopes[scope_id]
        ids = list(record.declarations.values()) + list(record.static_members.values())
        return [self._tree.declarations[i] for i in sorted(ids)]

    def references_of(self, declaration: DeclarationLike) -> List[Reference]:
        """References that resolve to ``declaration``, in source order."""
        edges = self._edges_by_declaration.get(self._declaration_id(declaration), [])
        return [self._tree.references[edge.reference_id] for edge in edges]

    def edges_of(self, declaration: DeclarationLike) -> List[LineageEdge]:
        return list(self._edges_by_declaration.get(self._declaration_id(declaration), []))

    def edge_of(self, reference: ReferenceLike) -> Optional[LineageEdge]:
        return self._edge_by_reference.get(self._reference_id(reference))

    def declaration_of(self, reference: ReferenceLike) -> Optional[Declaration]:
        edge = self.edge_of(reference)
        if edge is None:
            return None
        return self._tree.declarations[edge.declaration_id]

    def chain_of(self, reference: ReferenceLike) -> Optional[List[int]]:
        """Scope ids from the reference's scope to its declaration's scope.

        Returns None for unresolved references.
        """
        edge = self.edge_of(reference)
        return list(edge.chain) if edge is not None else None

    def unresolved(self) -> List[Reference]:
        return [r for r in self._tree.references if r.id not in self._edge_by_reference]

    def duplicates(self) -> List[Diagnostic]:
        return [d for d in self._diagnostics if d.code == DiagnosticCode.DUPLICATE_DECLARATION]

    # -- scope tree --------------------------------------------------------

    def scope_chain(self, scope_id: int) -> List[int]:
        """Scope ids from ``scope_id`` up to Global."""
        chain = []
        current = scope_id
        while current is not None:
            chain.append(current)
            current = self._tree.scopes[current].parent_id
        return chain

    def depth(self, scope_id: int) -> int:
        return len(self.scope_chain(scope_id)) - 1

    def qualified_name(self, scope_id: int) -> str:
        """Labels from Global down to ``scope_id`` joined by '::'.

        Global itself renders as 'global'; block scopes are skipped.
        """
        labels = [self._tree.scopes[i].label for i in reversed(self.scope_chain(scope_id))
                  if self._tree.scopes[i].kind not in (ScopeKind.GLOBAL, ScopeKind.BLOCK)]
        return '::'.join(labels) if labels else 'global'

    # -- export ------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data snapshot of the whole graph (JSON-serialisable)."""
        return {
            'scopes': [
                {
                    'id': s.id,
                    'kind': s.kind.value,
                    'parent': s.parent_id,
                    'label': s.label,
                    'static': s.static,
                    'declarations': dict(sorted(s.declarations.items())),
                    'static_members': dict(sorted(s.static_members.items())),
                    'children': list(s.children),
                }
                for s in self._tree.scopes
            ],
            'declarations': [
                {
                    'id': d.id,
                    'name': d.name,
                    'kind': d.kind.value,
                    'construct': d.construct,
                    'static': d.static,
                    'scope': d.scope_id,
                    'sites': [[span.line, span.column] for span in d.spans],
                }
                for d in self._tree.declarations
            ],
            'references': [
                {
                    'id': r.id,
                    'name': r.name,
                    'scope': r.scope_id,
                    'site': [r.span.line, r.span.column],
                    'qualified': r.qualified,
                    'write': r.write,
                }
                for r in self._tree.references
            ],
            'edges': [
                {
                    'reference': e.reference_id,
                    'declaration': e.declaration_id,
                    'chain': list(e.chain),
                    'path': e.path.value,
                }
                for e in self._edges
            ],
            'diagnostics': [
                {
                    'code': d.code.value,
                    'name': d.name,
                    'site': [d.span.line, d.span.column],
                    'message': d.message,
                }
                for d in self._diagnostics
            ],
        }

    # -- helpers -----------------------------------------------------------

    def _declaration_id(self, declaration: DeclarationLike) -> int:
        return declaration.id if isinstance(declaration, Declaration) else declaration

    def _reference_id(self, reference: ReferenceLike) -> int:
        return reference.id if isinstance(reference, Reference) else reference
