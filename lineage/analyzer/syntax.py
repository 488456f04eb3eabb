"""Language-neutral syntax tree consumed by the scope builder.

Adapters lower a concrete parse tree (see adapter.py) into these nodes. The
builder only ever looks at ``kind`` and the few role fields below; anything it
does not recognise is an ``OTHER`` container it simply recurses into.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from .models import DeclarationKind, Span


class NodeKind(str, Enum):
    PROGRAM = 'Program'
    FUNCTION = 'FunctionBoundary'
    BLOCK = 'BlockBoundary'
    CLASS = 'ClassBoundary'
    DECLARATOR = 'VariableDeclarator'
    DECLARATION_ID = 'Identifier-as-declaration'
    REFERENCE_ID = 'Identifier-as-reference'
    MEMBER_ACCESS = 'MemberAccess'
    OTHER = 'Other'


class Receiver(str, Enum):
    INSTANCE = 'implicit-instance'
    OTHER = 'other'


@dataclass
class SyntaxNode:
    """A typed node.

    Role fields by kind:
      DECLARATOR      binding (required), construct, modifier ('get'/'set'),
                      static (class members only)
      FUNCTION/CLASS  name, name_node (a DECLARATOR binding the construct's
                      own name in the enclosing context); FUNCTION also
                      static
      DECLARATION_ID  name
      REFERENCE_ID    name, write
      MEMBER_ACCESS   name, receiver, write
    """
    kind: NodeKind
    span: Span
    children: List['SyntaxNode'] = field(default_factory=list)
    name: Optional[str] = None
    binding: Optional[DeclarationKind] = None
    construct: str = ''
    modifier: Optional[str] = None
    name_node: Optional['SyntaxNode'] = None
    receiver: Optional[Receiver] = None
    write: bool = False
    static: bool = False

    def walk(self) -> Iterator['SyntaxNode']:
        """Pre-order iteration over this node and its descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))
            if node.name_node is not None:
                stack.append(node.name_node)


def declaration_ids(declarator: SyntaxNode) -> List[SyntaxNode]:
    """Return the identifiers a declarator binds, in source order."""
    return [child for child in declarator.children
            if child.kind == NodeKind.DECLARATION_ID]
