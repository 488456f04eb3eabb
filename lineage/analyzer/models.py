"""Data model shared by the scope builder, resolver and lineage graph."""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple


class DeclarationKind(str, Enum):
    """How a binding is introduced, which decides where it is registered."""
    BLOCK_SCOPED = 'BlockScoped'        # let, const, class declarations, catch params
    FUNCTION_SCOPED = 'FunctionScoped'  # var
    FUNCTION_HOISTED = 'FunctionHoisted'  # function declarations, import bindings
    CLASS_MEMBER = 'ClassMember'
    PARAMETER = 'Parameter'


# Kinds that may be redeclared in the same scope and merge into one record
MERGEABLE_KINDS = (
    DeclarationKind.PARAMETER,
    DeclarationKind.FUNCTION_HOISTED,
    DeclarationKind.FUNCTION_SCOPED,
)


class ScopeKind(str, Enum):
    GLOBAL = 'Global'
    FUNCTION = 'Function'
    BLOCK = 'Block'
    CLASS_BODY = 'ClassBody'


class ResolutionPath(str, Enum):
    LEXICAL = 'lexical'
    MEMBER = 'member'


class DiagnosticCode(str, Enum):
    DUPLICATE_DECLARATION = 'DuplicateDeclaration'
    UNRESOLVED_REFERENCE = 'UnresolvedReference'
    TEMPORAL_DEAD_ZONE = 'TemporalDeadZone'


@dataclass(frozen=True)
class Span:
    """Source range of a node. Line and column are 1-based."""
    start_byte: int
    end_byte: int
    line: int
    column: int

    @property
    def length(self) -> int:
        return self.end_byte - self.start_byte

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Declaration:
    """One logical binding.

    Same-name var/function/parameter declarators in one function scope are
    merged, so ``spans`` holds every introducing site in source order.
    ``visible_from`` is the byte offset where a block-scoped binding leaves
    its temporal dead zone; it is 0 for every other kind.
    """
    id: int
    name: str
    kind: DeclarationKind
    spans: Tuple[Span, ...]
    scope_id: int
    visible_from: int = 0
    construct: str = ''  # declaring construct, e.g. 'const', 'function', 'method'
    static: bool = False

    @property
    def span(self) -> Span:
        return self.spans[0]


@dataclass(frozen=True)
class Reference:
    """An identifier occurrence in a use position."""
    id: int
    name: str
    span: Span
    scope_id: int
    qualified: bool = False  # reached through the instance receiver (this.name)
    write: bool = False


def _empty_names() -> Mapping[str, int]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Scope:
    """One lexical region.

    ``declarations`` maps a name to a declaration id; a class body keeps its
    static members apart in ``static_members``. ``children`` holds child scope
    ids in creation order. ``static`` marks a function scope that runs with the
    class itself as receiver (static methods, static field initializers and
    static blocks).
    """
    id: int
    kind: ScopeKind
    parent_id: Optional[int]
    label: str
    span: Optional[Span] = None
    static: bool = False
    declarations: Mapping[str, int] = field(default_factory=_empty_names, hash=False)
    static_members: Mapping[str, int] = field(default_factory=_empty_names, hash=False)
    children: Tuple[int, ...] = ()

    def members(self, static: bool = False) -> Mapping[str, int]:
        return self.static_members if static else self.declarations


@dataclass(frozen=True)
class LineageEdge:
    """A resolved reference.

    ``chain`` lists scope ids from the reference's scope up to the scope that
    owns the declaration, both ends included.
    """
    reference_id: int
    declaration_id: int
    chain: Tuple[int, ...]
    path: ResolutionPath = ResolutionPath.LEXICAL

    @property
    def hops(self) -> int:
        return len(self.chain) - 1


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal finding recorded while building or resolving."""
    code: DiagnosticCode
    name: str
    span: Span
    message: str
    declaration_id: Optional[int] = None  # first declaration (duplicates, dead-zone hints)
    reference_id: Optional[int] = None


@dataclass
class ScopeTree:
    """Output of the scope builder: arenas indexed by id."""
    scopes: List[Scope]
    declarations: List[Declaration]
    references: List[Reference]
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def root(self) -> Scope:
        return self.scopes[0]
