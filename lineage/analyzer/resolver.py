"""Reference resolution against a built scope tree.

Two lookup paths exist and never compete for the same reference:

- lexical: walk the scope chain outward from the reference, skipping class
  members and block-scoped bindings still in their temporal dead zone;
- member: ``this.name`` looks the name up in the innermost enclosing class
  body (its static members when the code is static), falling back to the
  lexical path when the class has no such member.
"""
import logging
from typing import List, Optional, Tuple

from .models import (
    Declaration,
    DeclarationKind,
    Diagnostic,
    DiagnosticCode,
    LineageEdge,
    Reference,
    ResolutionPath,
    ScopeKind,
    ScopeTree,
)

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Resolve every reference of a scope tree to its declaration."""

    def __init__(self, tree: ScopeTree):
        self.scopes = tree.scopes
        self.declarations = tree.declarations
        self.diagnostics: List[Diagnostic] = []

    def resolve_all(self, references: List[Reference]) -> Tuple[List[LineageEdge], List[Diagnostic]]:
        """Resolve references in order.

        Returns:
            Tuple of (edges, diagnostics); unresolved references produce a
            diagnostic instead of an edge.
        """
        edges = []
        for reference in references:
            edge = self.resolve(reference)
            if edge is not None:
                edges.append(edge)
        logger.debug("Resolved %d of %d references", len(edges), len(references))
        return edges, self.diagnostics

    def resolve(self, reference: Reference) -> Optional[LineageEdge]:
        if reference.qualified:
            edge = self._resolve_member(reference)
            if edge is not None:
                return edge

        edge = self._resolve_lexical(reference)
        if edge is None:
            logger.debug("Unresolved reference '%s' at %s", reference.name, reference.span)
            self.diagnostics.append(Diagnostic(
                DiagnosticCode.UNRESOLVED_REFERENCE, reference.name, reference.span,
                f"'{reference.name}' is not declared in any enclosing scope; treated as external",
                reference_id=reference.id,
            ))
        return edge

    def _resolve_member(self, reference: Reference) -> Optional[LineageEdge]:
        chain = []
        previous = None
        scope_id = reference.scope_id
        while scope_id is not None:
            scope = self.scopes[scope_id]
            chain.append(scope_id)
            if scope.kind == ScopeKind.CLASS_BODY:
                # Inside static code the receiver is the class, not an instance
                static = previous is not None and previous.static
                declaration_id = scope.members(static).get(reference.name)
                if declaration_id is None:
                    return None
                return LineageEdge(reference.id, declaration_id, tuple(chain), ResolutionPath.MEMBER)
            previous = scope
            scope_id = scope.parent_id
        return None

    def _resolve_lexical(self, reference: Reference) -> Optional[LineageEdge]:
        chain = []
        crossed_function = False
        scope_id = reference.scope_id

        while scope_id is not None:
            scope = self.scopes[scope_id]
            chain.append(scope_id)
            declaration_id = scope.declarations.get(reference.name)

            if declaration_id is not None:
                declaration = self.declarations[declaration_id]
                if declaration.kind == DeclarationKind.CLASS_MEMBER:
                    pass
                elif not crossed_function and self._in_dead_zone(declaration, reference):
                    self.diagnostics.append(Diagnostic(
                        DiagnosticCode.TEMPORAL_DEAD_ZONE, reference.name, reference.span,
                        f"'{reference.name}' is used before its declaration at {declaration.span}",
                        declaration_id=declaration.id, reference_id=reference.id,
                    ))
                else:
                    return LineageEdge(reference.id, declaration.id, tuple(chain), ResolutionPath.LEXICAL)

            # Code in a nested function (or field initializer) runs later, after
            # the outer bindings exist
            if scope.kind == ScopeKind.FUNCTION:
                crossed_function = True
            scope_id = scope.parent_id

        return None

    @staticmethod
    def _in_dead_zone(declaration: Declaration, reference: Reference) -> bool:
        return (declaration.kind == DeclarationKind.BLOCK_SCOPED
                and reference.span.start_byte < declaration.visible_from)
