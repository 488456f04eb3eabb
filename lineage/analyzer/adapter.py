"""Lower tree-sitter JavaScript/TypeScript parse trees into SyntaxNode trees.

The lowering keeps only what matters for binding analysis: scope boundaries,
declarators with the identifiers they bind, identifier uses, and member
accesses. Literal leaves vanish; anything else becomes an OTHER container.
"""
import logging
from typing import List, Optional, Union

import tree_sitter

from .models import DeclarationKind, Span
from .syntax import NodeKind, Receiver, SyntaxNode

logger = logging.getLogger(__name__)


class TreeSitterAdapter:
    """Lowers one parsed source file. Not reusable across sources."""

    FUNCTION_DECLARATIONS = {'function_declaration', 'generator_function_declaration'}
    FUNCTION_EXPRESSIONS = {'function_expression', 'function', 'generator_function', 'arrow_function'}
    CLASS_DECLARATIONS = {'class_declaration', 'abstract_class_declaration'}
    BLOCK_TYPES = {'statement_block', 'for_statement', 'switch_body'}
    REFERENCE_TYPES = {'identifier', 'shorthand_property_identifier'}
    PATTERN_TYPES = {'object_pattern', 'array_pattern', 'rest_pattern', 'parenthesized_expression'}

    # Type-level syntax binds nothing at runtime
    SKIPPED_TYPES = {
        'comment', 'type_annotation', 'type_arguments', 'type_parameters',
        'interface_declaration', 'type_alias_declaration',
        'function_signature', 'ambient_declaration', 'abstract_method_signature',
        'method_signature', 'index_signature', 'omitting_type_annotation',
        'opting_type_annotation', 'asserts_annotation',
    }

    def __init__(self, source_code: Union[str, bytes]):
        if isinstance(source_code, str):
            source_code = source_code.encode('utf-8')
        self.source_code = source_code

    def lower(self, root: Union[tree_sitter.Tree, tree_sitter.Node]) -> SyntaxNode:
        """Lower a tree (or its root node) into a PROGRAM node."""
        if isinstance(root, tree_sitter.Tree):
            root = root.root_node
        return SyntaxNode(NodeKind.PROGRAM, self._span(root),
                          children=self._lower_children(root))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _span(self, node: tree_sitter.Node) -> Span:
        row, column = node.start_point
        return Span(node.start_byte, node.end_byte, row + 1, column + 1)

    def _text(self, node: tree_sitter.Node) -> str:
        return self.source_code[node.start_byte:node.end_byte].decode('utf-8', errors='replace')

    def _lower_children(self, node: tree_sitter.Node) -> List[SyntaxNode]:
        lowered = []
        for child in node.named_children:
            result = self._lower(child)
            if result is not None:
                lowered.append(result)
        return lowered

    def _container(self, node: tree_sitter.Node, children: List[SyntaxNode]) -> Optional[SyntaxNode]:
        if not children:
            return None
        return SyntaxNode(NodeKind.OTHER, self._span(node), children=children)

    def _keyword(self, node: tree_sitter.Node, keywords) -> Optional[str]:
        """Find the declaration keyword of a statement (let/const/var, get/set)."""
        kind_node = node.child_by_field_name('kind')
        if kind_node is not None:
            return self._text(kind_node)
        for child in node.children:
            if not child.is_named and child.type in keywords:
                return child.type
        return None

    @staticmethod
    def _is_static(node: tree_sitter.Node) -> bool:
        return any(not child.is_named and child.type == 'static' for child in node.children)

    def _binding_id(self, node: tree_sitter.Node) -> SyntaxNode:
        return SyntaxNode(NodeKind.DECLARATION_ID, self._span(node), name=self._text(node))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _lower(self, node: tree_sitter.Node) -> Optional[SyntaxNode]:
        node_type = node.type

        if node_type in self.SKIPPED_TYPES:
            return None
        if node_type in self.REFERENCE_TYPES:
            return SyntaxNode(NodeKind.REFERENCE_ID, self._span(node), name=self._text(node))
        if node_type in self.FUNCTION_DECLARATIONS:
            return self._function(node, hoisted=True)
        if node_type in self.FUNCTION_EXPRESSIONS:
            return self._function(node)
        if node_type == 'method_definition':
            # Object literal method; class methods go through _class_member
            return self._method(node, in_class=False)
        if node_type in self.CLASS_DECLARATIONS or node_type == 'class':
            return self._class(node)
        if node_type in ('lexical_declaration', 'variable_declaration'):
            return self._declaration(node)
        if node_type == 'for_in_statement':
            return self._for_in(node)
        if node_type == 'catch_clause':
            return self._catch(node)
        if node_type in self.BLOCK_TYPES:
            return SyntaxNode(NodeKind.BLOCK, self._span(node), children=self._lower_children(node))
        if node_type == 'member_expression':
            return self._member(node)
        if node_type in ('assignment_expression', 'augmented_assignment_expression'):
            return self._assignment(node)
        if node_type == 'update_expression':
            argument = node.child_by_field_name('argument')
            if argument is None:
                return None
            return self._container(node, self._write_targets(argument))
        if node_type == 'import_statement':
            return self._import(node)
        if node_type == 'enum_declaration':
            return self._enum(node)
        if node_type in ('internal_module', 'module'):
            return self._namespace(node)
        if node_type == 'export_specifier':
            # Only the local name is a use; the alias names the export
            name_node = node.child_by_field_name('name')
            return self._lower(name_node) if name_node is not None else None
        if node_type == 'ERROR':
            logger.debug("Parse error recovered at %s", self._span(node))

        return self._container(node, self._lower_children(node))

    # ------------------------------------------------------------------
    # Functions and classes
    # ------------------------------------------------------------------

    def _function(self, node: tree_sitter.Node, hoisted: bool = False) -> SyntaxNode:
        name_node = node.child_by_field_name('name')
        name = self._text(name_node) if name_node is not None else None
        children = []
        declarator = None

        if name_node is not None:
            declarator = SyntaxNode(
                NodeKind.DECLARATOR, self._span(node),
                children=[SyntaxNode(NodeKind.DECLARATION_ID, self._span(name_node), name=name)],
                binding=DeclarationKind.FUNCTION_HOISTED,
                construct='function',
            )
            if not hoisted:
                # A named function expression sees its own name, nobody else does
                children.append(declarator)
                declarator = None

        children.extend(self._parameters(node))
        children.extend(self._body(node.child_by_field_name('body')))

        return SyntaxNode(NodeKind.FUNCTION, self._span(node), children=children,
                          name=name or '<anonymous>', name_node=declarator)

    def _method(self, node: tree_sitter.Node, in_class: bool) -> SyntaxNode:
        name_node = node.child_by_field_name('name')
        name = self._text(name_node) if name_node is not None else '<anonymous>'
        static = in_class and self._is_static(node)
        children = []
        declarator = None

        if name_node is not None:
            if in_class and name_node.type in ('property_identifier', 'private_property_identifier'):
                accessor = self._keyword(node, ('get', 'set'))
                declarator = SyntaxNode(
                    NodeKind.DECLARATOR, self._span(node),
                    children=[self._binding_id(name_node)],
                    binding=DeclarationKind.CLASS_MEMBER,
                    construct={'get': 'getter', 'set': 'setter'}.get(accessor, 'method'),
                    modifier=accessor,
                    static=static,
                )
            else:
                computed = self._lower(name_node)
                if computed is not None:
                    children.append(computed)

        children.extend(self._parameters(node))
        children.extend(self._body(node.child_by_field_name('body')))

        return SyntaxNode(NodeKind.FUNCTION, self._span(node), children=children,
                          name=name, name_node=declarator, static=static)

    def _parameter_properties(self, constructor: tree_sitter.Node) -> List[SyntaxNode]:
        """Instance members declared by TypeScript ``constructor(private x)`` parameters."""
        formal = constructor.child_by_field_name('parameters')
        if formal is None:
            return []

        members = []
        for param in formal.named_children:
            if param.type not in ('required_parameter', 'optional_parameter'):
                continue
            pattern = param.child_by_field_name('pattern')
            if pattern is None or pattern.type != 'identifier':
                continue
            if any(child.type in ('accessibility_modifier', 'override_modifier')
                   or (not child.is_named and child.type == 'readonly')
                   for child in param.children):
                members.append(SyntaxNode(NodeKind.DECLARATOR, self._span(param),
                                          children=[self._binding_id(pattern)],
                                          binding=DeclarationKind.CLASS_MEMBER,
                                          construct='parameter-property'))
        return members

    def _parameters(self, node: tree_sitter.Node) -> List[SyntaxNode]:
        single = node.child_by_field_name('parameter')
        if single is not None:
            params = [single]
        else:
            formal = node.child_by_field_name('parameters')
            params = formal.named_children if formal is not None else []

        lowered = []
        for param in params:
            declarator = self._declarator(param, DeclarationKind.PARAMETER, 'parameter')
            if declarator is not None:
                lowered.append(declarator)
        return lowered

    def _body(self, body: Optional[tree_sitter.Node]) -> List[SyntaxNode]:
        if body is None:
            return []
        if body.type == 'statement_block':
            # A function body shares the function's scope
            return self._lower_children(body)
        lowered = self._lower(body)
        return [lowered] if lowered is not None else []

    def _class(self, node: tree_sitter.Node) -> SyntaxNode:
        name_node = node.child_by_field_name('name')
        name = self._text(name_node) if name_node is not None else None
        declarator = None
        if name_node is not None and node.type in self.CLASS_DECLARATIONS:
            declarator = SyntaxNode(
                NodeKind.DECLARATOR, self._span(node),
                children=[SyntaxNode(NodeKind.DECLARATION_ID, self._span(name_node), name=name)],
                binding=DeclarationKind.BLOCK_SCOPED,
                construct='class',
            )

        children = []
        for child in node.named_children:
            if child.type == 'class_heritage':
                children.extend(self._lower_children(child))

        body = node.child_by_field_name('body')
        if body is not None:
            for member in body.named_children:
                if member.type == 'method_definition' and self._is_constructor(member):
                    children.extend(self._parameter_properties(member))
                lowered = self._class_member(member)
                if lowered is not None:
                    children.append(lowered)

        return SyntaxNode(NodeKind.CLASS, self._span(node), children=children,
                          name=name or '<anonymous>', name_node=declarator)

    def _class_member(self, member: tree_sitter.Node) -> Optional[SyntaxNode]:
        if member.type == 'method_definition':
            return self._method(member, in_class=True)

        if member.type == 'class_static_block':
            return SyntaxNode(NodeKind.FUNCTION, self._span(member), name='static', static=True,
                              children=self._body(member.child_by_field_name('body')))

        if member.type in ('field_definition', 'public_field_definition'):
            return self._field(member)

        return self._lower(member)

    def _field(self, member: tree_sitter.Node) -> Optional[SyntaxNode]:
        prop = member.child_by_field_name('property') or member.child_by_field_name('name')
        value = member.child_by_field_name('value')
        static = self._is_static(member)
        named = prop is not None and prop.type in ('property_identifier', 'private_property_identifier')

        children = []
        if named:
            children.append(self._binding_id(prop))
        elif prop is not None:
            # Computed keys are evaluated with the class definition
            self._append(children, self._lower(prop))
        if value is not None:
            lowered = self._lower(value)
            if lowered is not None:
                # The initializer runs later, once per instance (or once for
                # the class when static), like a method body
                children.append(SyntaxNode(NodeKind.FUNCTION, self._span(value), children=[lowered],
                                           name=self._text(prop) if named else '<field>', static=static))

        if named:
            return SyntaxNode(NodeKind.DECLARATOR, self._span(member), children=children,
                              binding=DeclarationKind.CLASS_MEMBER, construct='field', static=static)
        return self._container(member, children)

    def _is_constructor(self, method: tree_sitter.Node) -> bool:
        name_node = method.child_by_field_name('name')
        return (name_node is not None and name_node.type == 'property_identifier'
                and self._text(name_node) == 'constructor' and not self._is_static(method))

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _declaration(self, node: tree_sitter.Node) -> Optional[SyntaxNode]:
        if node.type == 'variable_declaration':
            binding, construct = DeclarationKind.FUNCTION_SCOPED, 'var'
        else:
            binding = DeclarationKind.BLOCK_SCOPED
            construct = self._keyword(node, ('let', 'const')) or 'let'

        declarators = []
        for child in node.named_children:
            if child.type != 'variable_declarator':
                continue
            target = child.child_by_field_name('name')
            if target is None:
                continue
            lowered = []
            self._pattern(target, lowered)
            value = child.child_by_field_name('value')
            if value is not None:
                initializer = self._lower(value)
                if initializer is not None:
                    lowered.append(initializer)
            declarators.append(SyntaxNode(NodeKind.DECLARATOR, self._span(child), children=lowered,
                                          binding=binding, construct=construct))

        return self._container(node, declarators)

    def _declarator(self, target: tree_sitter.Node, binding: DeclarationKind,
                    construct: str) -> Optional[SyntaxNode]:
        """Wrap a binding pattern in a declarator; default values stay as children."""
        lowered = []
        self._pattern(target, lowered)
        if not any(child.kind == NodeKind.DECLARATION_ID for child in lowered):
            return self._container(target, lowered)
        return SyntaxNode(NodeKind.DECLARATOR, self._span(target), children=lowered,
                          binding=binding, construct=construct)

    def _pattern(self, node: tree_sitter.Node, out: List[SyntaxNode]):
        """Collect bound identifiers and default-value expressions, in source order."""
        node_type = node.type

        if node_type in ('identifier', 'shorthand_property_identifier_pattern'):
            out.append(self._binding_id(node))
        elif node_type in ('assignment_pattern', 'object_assignment_pattern'):
            left = node.child_by_field_name('left')
            right = node.child_by_field_name('right')
            if left is not None:
                self._pattern(left, out)
            if right is not None:
                self._append(out, self._lower(right))
        elif node_type == 'pair_pattern':
            key = node.child_by_field_name('key')
            value = node.child_by_field_name('value')
            if key is not None and key.type == 'computed_property_name':
                self._append(out, self._lower(key))
            if value is not None:
                self._pattern(value, out)
        elif node_type in ('object_pattern', 'array_pattern', 'rest_pattern'):
            for child in node.named_children:
                self._pattern(child, out)
        elif node_type in ('required_parameter', 'optional_parameter'):
            pattern = node.child_by_field_name('pattern')
            value = node.child_by_field_name('value')
            if pattern is not None:
                self._pattern(pattern, out)
            if value is not None:
                self._append(out, self._lower(value))
        elif node_type not in self.SKIPPED_TYPES:
            self._append(out, self._lower(node))

    @staticmethod
    def _append(out: List[SyntaxNode], node: Optional[SyntaxNode]):
        if node is not None:
            out.append(node)

    def _for_in(self, node: tree_sitter.Node) -> SyntaxNode:
        keyword = self._keyword(node, ('let', 'const', 'var'))
        children = []

        left = node.child_by_field_name('left')
        if left is not None:
            if keyword is None:
                children.extend(self._write_targets(left))
            else:
                binding = (DeclarationKind.FUNCTION_SCOPED if keyword == 'var'
                           else DeclarationKind.BLOCK_SCOPED)
                self._append(children, self._declarator(left, binding, keyword))

        for field_name in ('right', 'body'):
            child = node.child_by_field_name(field_name)
            if child is not None:
                self._append(children, self._lower(child))

        return SyntaxNode(NodeKind.BLOCK, self._span(node), children=children)

    def _catch(self, node: tree_sitter.Node) -> SyntaxNode:
        children = []
        parameter = node.child_by_field_name('parameter')
        if parameter is not None:
            self._append(children, self._declarator(parameter, DeclarationKind.BLOCK_SCOPED, 'catch'))
        body = node.child_by_field_name('body')
        if body is not None:
            children.extend(self._lower_children(body))
        return SyntaxNode(NodeKind.BLOCK, self._span(node), children=children)

    def _import(self, node: tree_sitter.Node) -> Optional[SyntaxNode]:
        bound = []
        for clause in node.named_children:
            if clause.type != 'import_clause':
                continue
            for child in clause.named_children:
                if child.type == 'identifier':
                    bound.append(child)
                elif child.type == 'namespace_import':
                    bound.extend(c for c in child.named_children if c.type == 'identifier')
                elif child.type == 'named_imports':
                    for specifier in child.named_children:
                        if specifier.type != 'import_specifier':
                            continue
                        local = specifier.child_by_field_name('alias') or specifier.child_by_field_name('name')
                        if local is not None and local.type == 'identifier':
                            bound.append(local)

        declarators = [
            SyntaxNode(NodeKind.DECLARATOR, self._span(ident),
                       children=[self._binding_id(ident)],
                       binding=DeclarationKind.FUNCTION_HOISTED, construct='import')
            for ident in bound
        ]
        return self._container(node, declarators)

    def _enum(self, node: tree_sitter.Node) -> Optional[SyntaxNode]:
        """A TypeScript enum binds its name; members are visible to later initializers."""
        name_node = node.child_by_field_name('name')
        body = node.child_by_field_name('body')

        members = []
        for member in (body.named_children if body is not None else []):
            if member.type == 'enum_assignment':
                key, value = member.child_by_field_name('name'), member.child_by_field_name('value')
            else:
                key, value = member, None
            children = []
            if key is not None and key.type == 'property_identifier':
                children.append(self._binding_id(key))
            if value is not None:
                self._append(children, self._lower(value))
            if children and children[0].kind == NodeKind.DECLARATION_ID:
                members.append(SyntaxNode(NodeKind.DECLARATOR, self._span(member), children=children,
                                          binding=DeclarationKind.BLOCK_SCOPED, construct='enum-member'))
            else:
                self._append(members, self._container(member, children))

        if name_node is None:
            return self._container(node, members)
        name = self._text(name_node)
        scope = SyntaxNode(NodeKind.FUNCTION, self._span(body if body is not None else node),
                           children=members, name=name)
        return SyntaxNode(NodeKind.DECLARATOR, self._span(node), children=[self._binding_id(name_node), scope],
                          binding=DeclarationKind.BLOCK_SCOPED, construct='enum')

    def _namespace(self, node: tree_sitter.Node) -> Optional[SyntaxNode]:
        """``namespace A.B { ... }`` binds ``A`` like a var; its body is a function scope."""
        name_node = node.child_by_field_name('name')
        body = node.child_by_field_name('body')
        scope = SyntaxNode(NodeKind.FUNCTION, self._span(node), children=self._body(body),
                           name=self._text(name_node) if name_node is not None else '<namespace>')

        ident = name_node
        while ident is not None and ident.type == 'nested_identifier':
            ident = ident.named_children[0] if ident.named_children else None
        if ident is None or ident.type != 'identifier':
            return scope
        return SyntaxNode(NodeKind.DECLARATOR, self._span(node), children=[self._binding_id(ident), scope],
                          binding=DeclarationKind.FUNCTION_SCOPED, construct='namespace')

    # ------------------------------------------------------------------
    # Uses
    # ------------------------------------------------------------------

    def _member(self, node: tree_sitter.Node, write: bool = False) -> Optional[SyntaxNode]:
        obj = node.child_by_field_name('object')
        prop = node.child_by_field_name('property')
        name = self._text(prop) if prop is not None else None

        if obj is not None and obj.type == 'this' and name is not None:
            return SyntaxNode(NodeKind.MEMBER_ACCESS, self._span(node), name=name,
                              receiver=Receiver.INSTANCE, write=write)

        children = []
        if obj is not None:
            self._append(children, self._lower(obj))
        return SyntaxNode(NodeKind.MEMBER_ACCESS, self._span(node), children=children,
                          name=name, receiver=Receiver.OTHER, write=write)

    def _assignment(self, node: tree_sitter.Node) -> Optional[SyntaxNode]:
        children = []
        left = node.child_by_field_name('left')
        right = node.child_by_field_name('right')
        if left is not None:
            children.extend(self._write_targets(left))
        if right is not None:
            self._append(children, self._lower(right))
        return self._container(node, children)

    def _write_targets(self, node: tree_sitter.Node) -> List[SyntaxNode]:
        """Lower an assignment target; bare names and this.members become writes."""
        node_type = node.type

        if node_type in ('identifier', 'shorthand_property_identifier_pattern'):
            return [SyntaxNode(NodeKind.REFERENCE_ID, self._span(node), name=self._text(node), write=True)]
        if node_type == 'member_expression':
            return [self._member(node, write=True)]
        if node_type in ('assignment_pattern', 'object_assignment_pattern'):
            targets = []
            left = node.child_by_field_name('left')
            right = node.child_by_field_name('right')
            if left is not None:
                targets.extend(self._write_targets(left))
            if right is not None:
                self._append(targets, self._lower(right))
            return targets
        if node_type == 'pair_pattern':
            targets = []
            key = node.child_by_field_name('key')
            value = node.child_by_field_name('value')
            if key is not None and key.type == 'computed_property_name':
                self._append(targets, self._lower(key))
            if value is not None:
                targets.extend(self._write_targets(value))
            return targets
        if node_type in self.PATTERN_TYPES:
            targets = []
            for child in node.named_children:
                targets.extend(self._write_targets(child))
            return targets

        lowered = self._lower(node)
        return [lowered] if lowered is not None else []
