"""Scope tree construction.

Walks a SyntaxNode tree once, depth-first in source order, building an arena
of scopes, registering every declaration in the scope its kind dictates and
recording every identifier use for the resolver.
"""
import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Dict, List, Optional, Set

from .errors import MalformedTree
from .models import (
    MERGEABLE_KINDS,
    Declaration,
    DeclarationKind,
    Diagnostic,
    DiagnosticCode,
    Reference,
    Scope,
    ScopeKind,
    ScopeTree,
    Span,
)
from .syntax import NodeKind, Receiver, SyntaxNode, declaration_ids

logger = logging.getLogger(__name__)

# Where each declaration kind may land, searched innermost first
_TARGET_SCOPES = {
    DeclarationKind.BLOCK_SCOPED: (ScopeKind.BLOCK, ScopeKind.FUNCTION, ScopeKind.GLOBAL),
    DeclarationKind.FUNCTION_SCOPED: (ScopeKind.FUNCTION, ScopeKind.GLOBAL),
    DeclarationKind.FUNCTION_HOISTED: (ScopeKind.FUNCTION, ScopeKind.GLOBAL),
    DeclarationKind.PARAMETER: (ScopeKind.FUNCTION,),
    DeclarationKind.CLASS_MEMBER: (ScopeKind.CLASS_BODY,),
}

# Strongest kind wins when same-scope declarations merge
_MERGE_RANK = {
    DeclarationKind.FUNCTION_SCOPED: 0,
    DeclarationKind.FUNCTION_HOISTED: 1,
    DeclarationKind.PARAMETER: 2,
}


class ScopeBuilder:
    """Build the scope tree and declaration table for one syntax tree.

    A builder is single-use: call ``build`` once per input.
    """

    def __init__(self):
        self.scopes: List[Scope] = []
        self.declarations: List[Declaration] = []
        self.references: List[Reference] = []
        self.diagnostics: List[Diagnostic] = []
        self._current: Optional[int] = None
        self._declared_members: Set[int] = set()
        # Per-scope working tables, frozen into the Scope records by build()
        self._names: List[Dict[str, int]] = []
        self._statics: List[Dict[str, int]] = []
        self._children: List[List[int]] = []

    def build(self, root: SyntaxNode) -> ScopeTree:
        """Walk ``root`` and return the populated scope tree.

        Raises:
            MalformedTree: If the root is not a PROGRAM node or a node lacks
                structure its kind requires.
        """
        if root.kind != NodeKind.PROGRAM:
            raise MalformedTree(f"Expected a Program root, got {root.kind.value}", root.span)

        self._current = self._push(ScopeKind.GLOBAL, 'global', root.span)
        self._visit_children(root)

        self.scopes = [
            replace(scope,
                    declarations=MappingProxyType(self._names[scope.id]),
                    static_members=MappingProxyType(self._statics[scope.id]),
                    children=tuple(self._children[scope.id]))
            for scope in self.scopes
        ]
        logger.debug("Built %d scopes, %d declarations, %d references",
                     len(self.scopes), len(self.declarations), len(self.references))
        return ScopeTree(self.scopes, self.declarations, self.references, self.diagnostics)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _visit(self, node: SyntaxNode):
        kind = node.kind

        if kind == NodeKind.FUNCTION:
            self._visit_function(node)
        elif kind == NodeKind.CLASS:
            self._visit_class(node)
        elif kind == NodeKind.BLOCK:
            self._visit_block(node)
        elif kind == NodeKind.DECLARATOR:
            self._visit_declarator(node)
        elif kind == NodeKind.REFERENCE_ID:
            self._record_reference(node, qualified=False)
        elif kind == NodeKind.MEMBER_ACCESS:
            self._visit_member(node)
        elif kind == NodeKind.DECLARATION_ID:
            raise MalformedTree(f"Declaration identifier '{node.name}' outside a declarator", node.span)
        elif kind == NodeKind.PROGRAM:
            raise MalformedTree("Nested Program node", node.span)
        else:
            # Unknown or OTHER: opaque container
            self._visit_children(node)

    def _visit_children(self, node: SyntaxNode):
        for child in node.children:
            self._visit(child)

    def _visit_function(self, node: SyntaxNode):
        declarator = node.name_node
        if declarator is not None and id(declarator) not in self._declared_members:
            self._declare(declarator)

        parent = self._current
        self._current = self._push(ScopeKind.FUNCTION, node.name or '<anonymous>', node.span,
                                   static=node.static)
        self._visit_children(node)
        self._current = parent

    def _visit_class(self, node: SyntaxNode):
        if node.name_node is not None:
            self._declare(node.name_node)

        parent = self._current
        self._current = self._push(ScopeKind.CLASS_BODY, node.name or '<anonymous>', node.span)
        self._declare_members(node)
        self._visit_children(node)
        self._current = parent

    def _declare_members(self, class_node: SyntaxNode):
        """Register explicit fields and methods before any member body runs."""
        for child in class_node.children:
            if child.kind == NodeKind.FUNCTION:
                member = child.name_node
            elif child.kind == NodeKind.DECLARATOR:
                member = child
            else:
                continue
            if member is not None and member.binding == DeclarationKind.CLASS_MEMBER:
                self._declare(member)
                self._declared_members.add(id(member))

    def _visit_block(self, node: SyntaxNode):
        if not self._needs_block_scope(node):
            self._visit_children(node)
            return

        parent = self._current
        self._current = self._push(ScopeKind.BLOCK, '<block>', node.span)
        self._visit_children(node)
        self._current = parent

    def _needs_block_scope(self, block: SyntaxNode) -> bool:
        """True if the block itself introduces a block-scoped binding.

        Nested functions, classes and blocks decide for themselves, so the
        search stops at them (a class declaration's own name still counts).
        """
        stack = list(block.children)
        while stack:
            node = stack.pop()
            if node.kind == NodeKind.DECLARATOR and node.binding == DeclarationKind.BLOCK_SCOPED:
                return True
            if node.kind == NodeKind.CLASS:
                if node.name_node is not None and node.name_node.binding == DeclarationKind.BLOCK_SCOPED:
                    return True
                continue
            if node.kind in (NodeKind.FUNCTION, NodeKind.BLOCK):
                continue
            stack.extend(node.children)
        return False

    def _visit_declarator(self, node: SyntaxNode):
        # Class members were registered on entry to the class body
        if id(node) not in self._declared_members:
            self._declare(node)
        for child in node.children:
            if child.kind != NodeKind.DECLARATION_ID:
                self._visit(child)

    def _visit_member(self, node: SyntaxNode):
        if node.receiver != Receiver.INSTANCE:
            self._visit_children(node)
            return
        if not node.name:
            raise MalformedTree("Member access without a member name", node.span)

        class_scope = self._enclosing(ScopeKind.CLASS_BODY)
        if node.write and class_scope is not None:
            static = self._static_context(class_scope)
            members = self._statics[class_scope] if static else self._names[class_scope]
            if node.name not in members:
                # First write to an undeclared member stands in for its declaration
                self._register(class_scope, node.name, DeclarationKind.CLASS_MEMBER, node.span,
                               construct='this-assignment', static=static)
                return
        self._record_reference(node, qualified=True)

    def _static_context(self, class_scope: int) -> bool:
        """True if the current code runs with the class itself as receiver."""
        scope_id = self._current
        while scope_id is not None and self.scopes[scope_id].parent_id != class_scope:
            scope_id = self.scopes[scope_id].parent_id
        return scope_id is not None and self.scopes[scope_id].static

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _push(self, kind: ScopeKind, label: str, span: Span, static: bool = False) -> int:
        scope_id = len(self.scopes)
        self.scopes.append(Scope(scope_id, kind, self._current, label, span, static=static))
        self._names.append({})
        self._statics.append({})
        self._children.append([])
        if self._current is not None:
            self._children[self._current].append(scope_id)
        logger.debug("Opened %s scope %d (%s)", kind.value, scope_id, label)
        return scope_id

    def _enclosing(self, *kinds: ScopeKind) -> Optional[int]:
        scope_id = self._current
        while scope_id is not None:
            scope = self.scopes[scope_id]
            if scope.kind in kinds:
                return scope_id
            scope_id = scope.parent_id
        return None

    def _declare(self, declarator: SyntaxNode):
        if declarator.binding is None:
            raise MalformedTree("Declarator without a binding kind", declarator.span)
        ids = declaration_ids(declarator)
        if not ids:
            raise MalformedTree("Declarator has no identifier child", declarator.span)

        target = self._enclosing(*_TARGET_SCOPES[declarator.binding])
        if target is None:
            raise MalformedTree(
                f"{declarator.binding.value} declaration outside any "
                f"{'/'.join(k.value for k in _TARGET_SCOPES[declarator.binding])} scope",
                declarator.span,
            )

        visible_from = declarator.span.end_byte if declarator.binding == DeclarationKind.BLOCK_SCOPED else 0
        for ident in ids:
            if not ident.name:
                raise MalformedTree("Declaration identifier without a name", ident.span)
            self._register(target, ident.name, declarator.binding, ident.span,
                           construct=declarator.construct, visible_from=visible_from,
                           modifier=declarator.modifier, static=declarator.static)

    def _register(self, scope_id: int, name: str, kind: DeclarationKind, span: Span,
                  construct: str = '', visible_from: int = 0, modifier: Optional[str] = None,
                  static: bool = False):
        # Static and instance members of a class live in separate namespaces
        names = self._statics[scope_id] if static else self._names[scope_id]
        existing_id = names.get(name)

        if existing_id is None:
            declaration = Declaration(len(self.declarations), name, kind, (span,), scope_id,
                                      visible_from=visible_from, construct=construct, static=static)
            self.declarations.append(declaration)
            names[name] = declaration.id
            return

        existing = self.declarations[existing_id]
        if self._mergeable(existing, kind, modifier):
            merged_kind, merged_construct = existing.kind, existing.construct
            if kind in _MERGE_RANK and _MERGE_RANK[kind] > _MERGE_RANK.get(existing.kind, -1):
                merged_kind, merged_construct = kind, construct
            self.declarations[existing_id] = replace(existing, kind=merged_kind, construct=merged_construct,
                                                     spans=existing.spans + (span,))
            return

        logger.debug("Duplicate declaration of '%s' in scope %d", name, scope_id)
        self.diagnostics.append(Diagnostic(
            DiagnosticCode.DUPLICATE_DECLARATION, name, span,
            f"'{name}' is already declared in this scope at {existing.span}",
            declaration_id=existing_id,
        ))

    def _mergeable(self, existing: Declaration, kind: DeclarationKind, modifier: Optional[str]) -> bool:
        if existing.kind in MERGEABLE_KINDS and kind in MERGEABLE_KINDS:
            return True
        # get x() / set x(v) pair
        if existing.kind == kind == DeclarationKind.CLASS_MEMBER:
            pair = {existing.construct, {'get': 'getter', 'set': 'setter'}.get(modifier or '')}
            return pair == {'getter', 'setter'}
        return False

    def _record_reference(self, node: SyntaxNode, qualified: bool):
        if not node.name:
            raise MalformedTree("Reference without a name", node.span)
        self.references.append(Reference(len(self.references), node.name, node.span, self._current,
                                         qualified=qualified, write=node.write))


def build_scopes(root: SyntaxNode) -> ScopeTree:
    """Convenience wrapper: run a fresh ScopeBuilder over ``root``."""
    return ScopeBuilder().build(root)
