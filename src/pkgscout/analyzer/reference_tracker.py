"""Reference resolution: map name references in a file to known declarations."""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple
from tree_sitter import Node, Tree

from .dialects import get_dialect
from .extractor import FileScope, node_text
from .models import Usage


DOTTED_NAME = re.compile(r'^[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)+$')


class ResolutionTier(Enum):
    """Which precedence rule produced a resolution."""
    EXACT = "exact"
    ALIASED = "aliased"
    SAME_SCOPE = "same-scope"


@dataclass(frozen=True)
class Resolved:
    """A reference that resolved to a known qualified name."""
    qualified_name: str
    tier: ResolutionTier


@dataclass(frozen=True)
class ImportTable:
    """Explicit imports of one file.

    ``aliases`` maps the simple name an import introduces to the imported
    qualified name; ``imported`` lists every non-wildcard imported qualified name
    with the line it appears on.
    """
    aliases: Dict[str, str] = field(default_factory=dict)
    imported: Tuple[Tuple[str, int], ...] = ()


class SymbolIndex:
    """Read-only view of every known qualified name in one analysis run.

    Besides declared names the index knows package re-exports: a name imported by
    a package initializer is also reachable through the package.
    """

    def __init__(self, known: Iterable[str], reexports: Optional[Dict[str, str]] = None):
        self.known = frozenset(known)
        self.reexports = dict(reexports or {})

    def lookup(self, name: str) -> Optional[str]:
        """Return the declaration a name denotes, following re-exports.

        Args:
            name: Fully qualified candidate text

        Returns:
            Known qualified name, or None
        """
        seen: Set[str] = set()
        while name not in self.known:
            if name in seen:
                return None
            seen.add(name)
            rewritten = self._rewrite_reexport(name)
            if rewritten is None:
                return None
            name = rewritten
        return name

    def _rewrite_reexport(self, name: str) -> Optional[str]:
        if name in self.reexports:
            return self.reexports[name]
        # pkg.Helper.method where pkg.Helper is re-exported
        parts = name.split('.')
        for cut in range(len(parts) - 1, 0, -1):
            prefix = '.'.join(parts[:cut])
            if prefix in self.reexports:
                return self.reexports[prefix] + '.' + '.'.join(parts[cut:])
        return None


def resolve_reference(text: str, aliases: Dict[str, str], qualifier: str,
                      index: SymbolIndex) -> Optional[Resolved]:
    """Resolve reference text with exact, aliased, then same-scope precedence.

    Args:
        text: Reference text (simple or dotted name)
        aliases: Alias table of the referencing file
        qualifier: Scope that unqualified names of the file belong to
        index: Known qualified names

    Returns:
        Resolved outcome, or None when the reference is unresolved
    """
    target = index.lookup(text)
    if target is not None:
        return Resolved(target, ResolutionTier.EXACT)

    aliased = aliases.get(text)
    if aliased is not None:
        target = index.lookup(aliased)
        if target is not None:
            return Resolved(target, ResolutionTier.ALIASED)

    head, dot, rest = text.partition('.')
    if dot and head in aliases:
        target = index.lookup(f"{aliases[head]}.{rest}")
        if target is not None:
            return Resolved(target, ResolutionTier.ALIASED)

    if qualifier:
        target = index.lookup(f"{qualifier}.{text}")
        if target is not None:
            return Resolved(target, ResolutionTier.SAME_SCOPE)

    return None


def package_reexports(scope: FileScope, imports: ImportTable) -> Dict[str, str]:
    """Names a package initializer makes reachable through its package."""
    if not scope.is_package_init:
        return {}
    return {f"{scope.qualifier}.{alias}" if scope.qualifier else alias: target
            for alias, target in imports.aliases.items()}


class ReferenceResolver:
    """Walk a syntax tree and emit a Usage for every resolvable reference."""

    OPAQUE_NODES = {
        'python': {'import_statement', 'import_from_statement', 'future_import_statement'},
        'kotlin': {'package_header', 'import'},
    }
    NAME_NODES = {
        'python': {'identifier'},
        'kotlin': {'identifier'},
    }
    DOTTED_NODES = {
        'python': {'attribute'},
        'kotlin': {'navigation_expression', 'user_type'},
    }
    CALL_NODES = {
        'python': 'call',
        'kotlin': 'call_expression',
    }

    PY_PATTERN_NODES = {'pattern_list', 'tuple_pattern', 'list_pattern', 'tuple', 'list',
                        'list_splat_pattern', 'dictionary_splat_pattern',
                        'parenthesized_expression'}

    def __init__(self, language: str):
        self.language = get_dialect(language).name
        self.opaque_nodes = self.OPAQUE_NODES[self.language]
        self.name_nodes = self.NAME_NODES[self.language]
        self.dotted_nodes = self.DOTTED_NODES[self.language]
        self.call_node = self.CALL_NODES[self.language]

    # -------------------------------------------------------------------------
    # Imports
    # -------------------------------------------------------------------------

    def collect_imports(self, tree: Tree, scope: FileScope) -> ImportTable:
        """Build the alias table of a file from its explicit imports.

        Wildcard imports contribute nothing.

        Args:
            tree: Parsed tree
            scope: Scope of the file (used for relative imports)

        Returns:
            ImportTable for the file
        """
        aliases: Dict[str, str] = {}
        imported: List[Tuple[str, int]] = []

        def add(alias: str, full_name: str, node: Node):
            aliases[alias] = full_name
            imported.append((full_name, node.start_point[0] + 1))

        stack = [tree.root_node]
        while stack:
            current = stack.pop()
            if current.type == 'ERROR':
                continue
            if self.language == 'python' and current.type == 'import_statement':
                for name_node in current.children_by_field_name('name'):
                    self._add_python_import(name_node, '', add)
            elif self.language == 'python' and current.type == 'import_from_statement':
                module = self._python_from_module(current, scope)
                if module is not None and not any(c.type == 'wildcard_import' for c in current.children):
                    for name_node in current.children_by_field_name('name'):
                        self._add_python_import(name_node, module, add)
            elif self.language == 'kotlin' and current.type == 'import':
                self._add_kotlin_import(current, add)
            else:
                for child in reversed(current.named_children):
                    stack.append(child)

        return ImportTable(aliases=aliases, imported=tuple(imported))

    def _add_python_import(self, name_node: Node, module: str, add):
        alias_node = None
        if name_node.type == 'aliased_import':
            alias_node = name_node.child_by_field_name('alias')
            name_node = name_node.child_by_field_name('name')
            if name_node is None:
                return
        name = ''.join(node_text(name_node).split())
        full_name = f"{module}.{name}" if module else name
        alias = node_text(alias_node) if alias_node is not None else name.rsplit('.', 1)[-1]
        add(alias, full_name, name_node)

    def _python_from_module(self, statement: Node, scope: FileScope) -> Optional[str]:
        """Absolute module named by a ``from`` import, or None if it escapes the root."""
        module_node = statement.child_by_field_name('module_name')
        if module_node is None:
            return None
        if module_node.type != 'relative_import':
            return ''.join(node_text(module_node).split())

        dots = 0
        tail = ''
        for child in module_node.children:
            if child.type == 'import_prefix':
                dots = node_text(child).count('.')
            elif child.type == 'dotted_name':
                tail = ''.join(node_text(child).split())

        parts = scope.namespace.split('.') if scope.namespace else []
        if dots - 1 > len(parts):
            return None
        base = parts[:len(parts) - (dots - 1)]
        if tail:
            base.append(tail)
        return '.'.join(base)

    def _add_kotlin_import(self, header: Node, add):
        identifier = None
        alias = None
        wildcard = '*' in node_text(header)
        for child in header.children:
            if child.type == 'qualified_identifier' or (child.type == 'identifier' and identifier is None):
                identifier = child
            elif child.type == 'identifier':
                # import a.b.Type as Alias
                alias = node_text(child)
            elif child.type == '*':
                wildcard = True
        if identifier is None or wildcard:
            return
        full_name = ''.join(node_text(identifier).split())
        add(alias or full_name.rsplit('.', 1)[-1], full_name, identifier)

    # -------------------------------------------------------------------------
    # References
    # -------------------------------------------------------------------------

    def resolve_file(self, tree: Tree, scope: FileScope, file_path: str,
                     index: SymbolIndex, imports: ImportTable) -> List[Usage]:
        """Resolve every import, call and name reference of one file.

        Args:
            tree: Parsed tree
            scope: Scope of the file
            file_path: File identifier used for attribution
            index: Complete set of known qualified names
            imports: The file's import table

        Returns:
            Usages in source order; unresolved references are dropped
        """
        usages: List[Usage] = []

        def emit(target: str, line: int):
            usages.append(Usage(target_qualified_name=target,
                                referencing_namespace=scope.namespace,
                                file_path=file_path, line=line))

        # An import of a declaration is a use of it
        for full_name, line in imports.imported:
            target = index.lookup(full_name)
            if target is not None:
                emit(target, line)

        bindings: Set[int] = set()
        handled: Set[int] = set()
        stack = [tree.root_node]
        while stack:
            current = stack.pop()
            if current.type in self.opaque_nodes or current.type == 'ERROR':
                continue

            bindings.update(node.id for node in self._binding_names(current))

            if current.type == self.call_node:
                callee = self._callee(current)
                if callee is not None:
                    handled.add(callee.id)
                    resolved = self._resolve_node(callee, scope, index, imports)
                    if resolved is not None:
                        emit(resolved.qualified_name, callee.start_point[0] + 1)
            elif current.id not in handled and current.id not in bindings:
                resolved = self._resolve_node(current, scope, index, imports)
                if resolved is not None:
                    emit(resolved.qualified_name, current.start_point[0] + 1)

            for child in reversed(current.named_children):
                stack.append(child)

        return usages

    def _resolve_node(self, node: Node, scope: FileScope, index: SymbolIndex,
                      imports: ImportTable) -> Optional[Resolved]:
        text = self._reference_text(node)
        if text is None:
            return None
        return resolve_reference(text, imports.aliases, scope.qualifier, index)

    def _reference_text(self, node: Node) -> Optional[str]:
        if node.type in self.name_nodes:
            return node_text(node)
        if node.type in self.dotted_nodes:
            text = ''.join(node_text(node).split())
            if DOTTED_NAME.match(text):
                return text
        return None

    def _callee(self, call: Node) -> Optional[Node]:
        if self.language == 'python':
            return call.child_by_field_name('function')
        return call.named_children[0] if call.named_children else None

    def _binding_names(self, node: Node) -> List[Node]:
        """Name nodes directly introduced (not referenced) by a node."""
        if self.language == 'python':
            return self._python_bindings(node)
        return self._kotlin_bindings(node)

    def _python_bindings(self, node: Node) -> List[Node]:
        node_type = node.type
        names: List[Node] = []

        if node_type in ('class_definition', 'function_definition', 'keyword_argument',
                         'named_expression', 'default_parameter', 'typed_default_parameter'):
            names.append(node.child_by_field_name('name'))
        elif node_type == 'attribute':
            names.append(node.child_by_field_name('attribute'))
        elif node_type in ('parameters', 'lambda_parameters'):
            for param in node.named_children:
                if param.type == 'identifier':
                    names.append(param)
                elif param.type == 'typed_parameter':
                    first = param.named_children[0] if param.named_children else None
                    if first is not None:
                        names.extend(self._python_pattern_names(first))
                elif param.type in ('list_splat_pattern', 'dictionary_splat_pattern'):
                    names.extend(c for c in param.named_children if c.type == 'identifier')
        elif node_type == 'assignment' or node_type in ('for_statement', 'for_in_clause'):
            left = node.child_by_field_name('left')
            if left is not None:
                names.extend(self._python_pattern_names(left))
        elif node_type in ('global_statement', 'nonlocal_statement'):
            names.extend(c for c in node.named_children if c.type == 'identifier')
        elif node_type == 'as_pattern_target':
            for child in node.named_children:
                names.extend(self._python_pattern_names(child))

        return [name for name in names if name is not None]

    def _python_pattern_names(self, node: Node) -> List[Node]:
        if node.type == 'identifier':
            return [node]
        if node.type in self.PY_PATTERN_NODES:
            names = []
            for child in node.named_children:
                names.extend(self._python_pattern_names(child))
            return names
        return []

    def _kotlin_bindings(self, node: Node) -> List[Node]:
        node_type = node.type
        children = node.named_children

        if node_type in ('class_declaration', 'object_declaration', 'function_declaration',
                         'companion_object'):
            name_node = node.child_by_field_name('name')
            if name_node is not None and name_node.type == 'identifier':
                return [name_node]
            return [c for c in children if c.type == 'identifier'][:1]
        if node_type in ('type_alias', 'variable_declaration', 'parameter', 'class_parameter',
                         'enum_entry', 'catch_block', 'type_parameter'):
            return [c for c in children if c.type == 'identifier'][:1]
        if node_type in ('navigation_expression', 'user_type'):
            # a.b.member: only the leading segment is looked up on its own
            return [c for c in children[1:] if c.type == 'identifier']
        if node_type == 'callable_reference' and children and children[0].type != 'identifier':
            # Type::member
            return [c for c in children[1:] if c.type == 'identifier']
        if node_type == 'value_argument' and any(c.type == '=' for c in node.children):
            if children and children[0].type == 'identifier':
                return [children[0]]
        return []
