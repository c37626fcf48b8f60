"""Declaration extraction from parsed syntax trees."""
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional, Set
from tree_sitter import Node, Tree

from .dialects import Dialect, get_dialect
from .models import Declaration, DeclarationKind, Visibility


@dataclass(frozen=True)
class FileScope:
    """Where a file's declarations live.

    ``namespace`` is the package that owns the file and is what usage locality is
    measured against. ``qualifier`` prefixes the file's top-level declarations and
    same-scope lookups: the package itself for Kotlin, the module for Python.
    """
    namespace: str
    qualifier: str
    is_package_init: bool = False

    def qualify(self, name: str) -> str:
        return f"{self.qualifier}.{name}" if self.qualifier else name


def node_text(node: Node) -> str:
    return node.text.decode('utf-8', errors='ignore')


def marker_short_name(annotation_text: str) -> str:
    """Reduce annotation/decorator text to its short name.

    ``@dev.pp.PackagePrivate``, ``@PackagePrivate()`` and ``@get:PackagePrivate``
    all reduce to ``PackagePrivate``.
    """
    text = annotation_text.strip().lstrip('@').strip()
    text = text.split('(', 1)[0].split('<', 1)[0]
    if ':' in text:
        # use-site target, e.g. @field:Marker
        text = text.rsplit(':', 1)[-1]
    return text.strip().rsplit('.', 1)[-1].strip()


def python_module_path(file_path: str) -> str:
    """Dotted module path of a Python file identifier (``a/b/c.py`` -> ``a.b.c``)."""
    parts = list(PurePosixPath(file_path.replace('\\', '/')).with_suffix('').parts)
    parts = [part for part in parts if part not in ('', '.', '/')]
    if parts and parts[-1] == '__init__':
        parts = parts[:-1]
    return '.'.join(parts)


class DeclarationExtractor:
    """Extract namespace-scoped classes, functions and fields from syntax trees."""

    KOTLIN_TYPE_NODES = {'class_declaration', 'object_declaration'}

    # Kotlin nodes whose contents are local to a function or initializer
    KOTLIN_LOCAL_SCOPES = {
        'function_body', 'lambda_literal', 'anonymous_function', 'object_literal',
        'anonymous_initializer', 'secondary_constructor', 'getter', 'setter',
    }

    KOTLIN_VISIBILITY = {
        'public': Visibility.PUBLIC,
        'internal': Visibility.SCOPED,
        'private': Visibility.PRIVATE,
        'protected': Visibility.PROTECTED,
    }

    def __init__(self, language: str, marker: Optional[str] = None,
                 default_visibility: Optional[Visibility] = None):
        """Initialize extractor for given language.

        Args:
            language: One of 'kotlin', 'python'
            marker: Short name of the narrowing marker (defaults to the dialect's)
            default_visibility: Visibility of undecorated declarations
                (defaults to the dialect's)
        """
        self.dialect: Dialect = get_dialect(language)
        self.language = self.dialect.name
        self.marker = marker or self.dialect.marker
        self.default_visibility = default_visibility or self.dialect.default_visibility

    def file_scope(self, tree: Tree, file_path: str) -> FileScope:
        """Determine the namespace and qualifier of a file.

        Kotlin files declare their package; Python files derive it from their
        path relative to the source root.

        Args:
            tree: Parsed tree
            file_path: Host-assigned file identifier (relative path)

        Returns:
            FileScope for the file
        """
        if self.language == 'kotlin':
            package = ''
            for child in tree.root_node.named_children:
                if child.type == 'package_header':
                    for part in child.named_children:
                        if part.type in ('qualified_identifier', 'identifier'):
                            package = ''.join(node_text(part).split())
                            break
                    break
            return FileScope(namespace=package, qualifier=package)

        module = python_module_path(file_path)
        is_init = PurePosixPath(file_path.replace('\\', '/')).stem == '__init__'
        namespace = module if is_init else module.rpartition('.')[0]
        return FileScope(namespace=namespace, qualifier=module, is_package_init=is_init)

    def extract_declarations(self, tree: Tree, file_path: str,
                             scope: Optional[FileScope] = None) -> List[Declaration]:
        """Extract every externally referenceable declaration of a file.

        Declarations nested in function bodies are skipped. Duplicate qualified
        names (overloads, property setters, re-assignments) keep the first one.

        Args:
            tree: Parsed tree-sitter Tree
            file_path: Host-assigned file identifier
            scope: Precomputed FileScope, computed from the tree when omitted

        Returns:
            Declarations in source order
        """
        if scope is None:
            scope = self.file_scope(tree, file_path)

        declarations: List[Declaration] = []
        seen: Set[str] = set()

        def add(name_node: Node, kind: DeclarationKind, qualified_name: str,
                visibility: Visibility, marked: bool, parent_type: Optional[str]):
            if qualified_name in seen:
                return
            seen.add(qualified_name)
            declarations.append(Declaration(
                qualified_name=qualified_name,
                namespace=scope.namespace,
                name=node_text(name_node),
                kind=kind,
                visibility=visibility,
                file_path=file_path,
                line=name_node.start_point[0] + 1,
                already_marked=marked,
                parent_type=parent_type,
            ))

        if self.language == 'kotlin':
            self._walk_kotlin(tree.root_node, scope.qualifier, None, add)
        else:
            self._walk_python(tree.root_node, scope.qualifier, None, add)
        return declarations

    def _qualify(self, prefix: str, name: str) -> str:
        return f"{prefix}.{name}" if prefix else name

    def _has_marker(self, annotation_texts: List[str]) -> bool:
        return any(marker_short_name(text) == self.marker for text in annotation_texts)

    # -------------------------------------------------------------------------
    # Kotlin
    # -------------------------------------------------------------------------

    def _walk_kotlin(self, node: Node, prefix: str, parent_type: Optional[str], add,
                     pending: Optional[List[str]] = None) -> List[str]:
        # Statement-level annotations precede the declaration they decorate,
        # possibly across statement wrappers; leftovers are returned to the caller
        pending = list(pending or [])
        for child in node.named_children:
            if child.is_extra:
                continue
            if child.type == 'annotation':
                pending.append(node_text(child))
                continue
            annotations, pending = pending, []

            if child.type in self.KOTLIN_TYPE_NODES or child.type == 'type_alias':
                name_node = self._kotlin_name(child)
                if name_node is None:
                    continue
                qualified_name = self._qualify(prefix, node_text(name_node))
                visibility, marked = self._kotlin_modifiers(child, annotations)
                add(name_node, DeclarationKind.TYPE, qualified_name, visibility, marked, parent_type)
                if child.type != 'type_alias':
                    for body in child.named_children:
                        if body.type in ('class_body', 'enum_class_body'):
                            self._walk_kotlin(body, qualified_name, qualified_name, add)
            elif child.type == 'companion_object':
                # companion members are addressed through the enclosing type
                for body in child.named_children:
                    if body.type == 'class_body':
                        self._walk_kotlin(body, prefix, parent_type, add)
            elif child.type == 'function_declaration':
                name_node = self._kotlin_name(child)
                if name_node is None:
                    continue
                visibility, marked = self._kotlin_modifiers(child, annotations)
                add(name_node, DeclarationKind.FUNCTION,
                    self._qualify(prefix, node_text(name_node)), visibility, marked, parent_type)
            elif child.type == 'property_declaration':
                variable = self._first_child(child, 'variable_declaration')
                name_node = self._first_child(variable, 'identifier') if variable else None
                if name_node is None:
                    continue
                visibility, marked = self._kotlin_modifiers(child, annotations)
                add(name_node, DeclarationKind.FIELD,
                    self._qualify(prefix, node_text(name_node)), visibility, marked, parent_type)
            elif child.type in self.KOTLIN_LOCAL_SCOPES or child.type == 'ERROR':
                continue
            else:
                # statement and member wrappers
                pending = self._walk_kotlin(child, prefix, parent_type, add, annotations)
        return pending

    def _kotlin_name(self, declaration: Node) -> Optional[Node]:
        """Name node of a Kotlin declaration.

        Type aliases carry their name as the first bare identifier.
        """
        name_node = declaration.child_by_field_name('name')
        if name_node is not None and name_node.type == 'identifier':
            return name_node
        return self._first_child(declaration, 'identifier')

    def _kotlin_modifiers(self, declaration: Node, annotations: Optional[List[str]] = None):
        """Read visibility and marker presence from a Kotlin modifier list."""
        visibility = self.default_visibility
        annotations = list(annotations or [])
        modifiers = self._first_child(declaration, 'modifiers')
        if modifiers is not None:
            for modifier in modifiers.named_children:
                if modifier.type == 'visibility_modifier':
                    visibility = self.KOTLIN_VISIBILITY.get(node_text(modifier).strip(), Visibility.UNKNOWN)
                elif modifier.type == 'annotation':
                    annotations.append(node_text(modifier))
        return visibility, self._has_marker(annotations)

    # -------------------------------------------------------------------------
    # Python
    # -------------------------------------------------------------------------

    def _walk_python(self, node: Node, prefix: str, parent_type: Optional[str], add):
        for child in node.named_children:
            if child.type == 'decorated_definition':
                definition = child.child_by_field_name('definition')
                if definition is not None:
                    decorators = [node_text(d) for d in child.named_children if d.type == 'decorator']
                    self._visit_python_definition(definition, prefix, parent_type, add,
                                                  self._has_marker(decorators))
            elif child.type in ('class_definition', 'function_definition'):
                self._visit_python_definition(child, prefix, parent_type, add, False)
            elif child.type == 'assignment':
                self._visit_python_assignment(child, prefix, parent_type, add)
            elif child.type in ('lambda', 'ERROR'):
                continue
            else:
                self._walk_python(child, prefix, parent_type, add)

    def _visit_python_definition(self, definition: Node, prefix: str, parent_type: Optional[str],
                                 add, marked: bool):
        name_node = definition.child_by_field_name('name')
        if name_node is None:
            return
        name = node_text(name_node)
        qualified_name = self._qualify(prefix, name)
        kind = DeclarationKind.TYPE if definition.type == 'class_definition' else DeclarationKind.FUNCTION
        add(name_node, kind, qualified_name, self._python_visibility(name, parent_type is not None),
            marked, parent_type)

        # Function bodies are local scopes; only class bodies are walked
        if definition.type == 'class_definition':
            body = definition.child_by_field_name('body')
            if body is not None:
                self._walk_python(body, qualified_name, qualified_name, add)

    def _visit_python_assignment(self, assignment: Node, prefix: str, parent_type: Optional[str], add):
        left = assignment.child_by_field_name('left')
        if left is not None and left.type == 'identifier':
            name = node_text(left)
            add(left, DeclarationKind.FIELD, self._qualify(prefix, name),
                self._python_visibility(name, parent_type is not None), False, parent_type)
        right = assignment.child_by_field_name('right')
        if right is not None and right.type == 'assignment':
            self._visit_python_assignment(right, prefix, parent_type, add)

    def _python_visibility(self, name: str, in_type: bool) -> Visibility:
        """Map Python naming conventions onto visibilities.

        Dunder names belong to the language protocol and cannot be narrowed.
        """
        if name.startswith('__') and name.endswith('__') and len(name) > 4:
            return Visibility.UNKNOWN
        if name.startswith('__'):
            return Visibility.PRIVATE
        if name.startswith('_'):
            return Visibility.PROTECTED if in_type else Visibility.PRIVATE
        return self.default_visibility

    @staticmethod
    def _first_child(node: Node, node_type: str) -> Optional[Node]:
        for child in node.named_children:
            if child.type == node_type:
                return child
        return None
