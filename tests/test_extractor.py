"""Tests for declaration extraction in both source dialects."""
from textwrap import dedent

import pytest

from pkgscout.analyzer.extractor import (
    DeclarationExtractor,
    marker_short_name,
    python_module_path,
)
from pkgscout.analyzer.models import DeclarationKind, Visibility
from pkgscout.analyzer.parser import LanguageParser


def extract(language, code, file_path, **kwargs):
    """Parse code and return declarations keyed by qualified name."""
    tree = LanguageParser(language).parse_source(dedent(code).lstrip().encode('utf-8'))
    extractor = DeclarationExtractor(language, **kwargs)
    return {d.qualified_name: d for d in extractor.extract_declarations(tree, file_path)}


class TestMarkerShortName:
    """Annotation text reduces to the marker's short name."""

    @pytest.mark.parametrize("text", [
        "@PackagePrivate",
        "@PackagePrivate()",
        "@dev.scout.PackagePrivate",
        "@get:PackagePrivate",
        "@field:dev.scout.PackagePrivate(reason = \"x\")",
    ])
    def test_kotlin_forms(self, text):
        assert marker_short_name(text) == "PackagePrivate"

    def test_python_decorator_call(self):
        assert marker_short_name("@markers.package_private()") == "package_private"

    def test_match_is_case_sensitive(self):
        assert marker_short_name("@packageprivate") != "PackagePrivate"


class TestPythonModulePath:
    """Module paths derive from the file identifier."""

    def test_module(self):
        assert python_module_path("a/b/helper.py") == "a.b.helper"

    def test_package_init(self):
        assert python_module_path("a/b/__init__.py") == "a.b"

    def test_stub_file(self):
        assert python_module_path("a/types.pyi") == "a.types"


class TestKotlinExtraction:
    """Kotlin declarations, qualification and visibility."""

    def test_types_functions_and_properties(self):
        code = """
        package a.b

        class Helper

        object Registry {
            val size = 0
        }

        interface Repo {
            fun load(): String
        }

        typealias Names = List<String>

        fun topLevel() {
        }

        val counter = 1
        """
        decls = extract('kotlin', code, 'a/b/Things.kt')

        assert decls['a.b.Helper'].kind is DeclarationKind.TYPE
        assert decls['a.b.Registry'].kind is DeclarationKind.TYPE
        assert decls['a.b.Registry.size'].kind is DeclarationKind.FIELD
        assert decls['a.b.Registry.size'].parent_type == 'a.b.Registry'
        assert decls['a.b.Repo.load'].kind is DeclarationKind.FUNCTION
        assert decls['a.b.Names'].kind is DeclarationKind.TYPE
        assert decls['a.b.topLevel'].kind is DeclarationKind.FUNCTION
        assert decls['a.b.topLevel'].parent_type is None
        assert decls['a.b.counter'].kind is DeclarationKind.FIELD
        assert all(d.namespace == 'a.b' for d in decls.values())

    def test_line_and_file(self):
        decls = extract('kotlin', "package a.b\n\nclass Helper\n", 'src/main/kotlin/a/b/Helper.kt')
        helper = decls['a.b.Helper']
        assert helper.line == 3
        assert helper.file_path == 'src/main/kotlin/a/b/Helper.kt'
        assert helper.name == 'Helper'

    def test_local_declarations_are_skipped(self):
        code = """
        package a.b

        fun outer() {
            val local = 1
            fun inner() {
            }
        }
        """
        decls = extract('kotlin', code, 'a/b/Outer.kt')
        assert set(decls) == {'a.b.outer'}

    def test_visibility_modifiers(self):
        code = """
        package a.b

        class Open
        public class Explicit
        internal class Scoped
        private class Hidden

        open class Base {
            protected fun hook() {
            }
        }
        """
        decls = extract('kotlin', code, 'a/b/Vis.kt')
        assert decls['a.b.Open'].visibility is Visibility.PUBLIC
        assert decls['a.b.Explicit'].visibility is Visibility.PUBLIC
        assert decls['a.b.Scoped'].visibility is Visibility.SCOPED
        assert decls['a.b.Hidden'].visibility is Visibility.PRIVATE
        assert decls['a.b.Base.hook'].visibility is Visibility.PROTECTED

    def test_default_visibility_is_configurable(self):
        decls = extract('kotlin', "package a.b\n\nclass Open\n", 'a/b/Open.kt',
                        default_visibility=Visibility.SCOPED)
        assert decls['a.b.Open'].visibility is Visibility.SCOPED

    def test_marker_annotations(self):
        code = """
        package a.b

        @PackagePrivate
        class Marked

        @dev.scout.PackagePrivate
        class QualifiedMarker

        @Deprecated("old")
        class Other
        """
        decls = extract('kotlin', code, 'a/b/Marked.kt')
        assert decls['a.b.Marked'].already_marked
        assert decls['a.b.QualifiedMarker'].already_marked
        assert not decls['a.b.Other'].already_marked

    def test_custom_marker(self):
        code = "package a.b\n\n@Internal\nclass Marked\n\n@PackagePrivate\nclass Plain\n"
        decls = extract('kotlin', code, 'a/b/Marked.kt', marker='Internal')
        assert decls['a.b.Marked'].already_marked
        assert not decls['a.b.Plain'].already_marked

    def test_companion_members_belong_to_enclosing_type(self):
        code = """
        package a.b

        class Factory {
            companion object {
                fun create(): Factory = Factory()
            }
        }
        """
        decls = extract('kotlin', code, 'a/b/Factory.kt')
        assert 'a.b.Factory.create' in decls
        assert decls['a.b.Factory.create'].parent_type == 'a.b.Factory'

    def test_nested_types_are_qualified_through_outer_type(self):
        code = """
        package a.b

        class Outer {
            class Inner
        }
        """
        decls = extract('kotlin', code, 'a/b/Outer.kt')
        assert decls['a.b.Outer.Inner'].namespace == 'a.b'
        assert decls['a.b.Outer.Inner'].parent_type == 'a.b.Outer'

    def test_extension_function_uses_simple_name(self):
        decls = extract('kotlin', "package a.b\n\nfun String.shout() = uppercase()\n", 'a/b/Ext.kt')
        assert set(decls) == {'a.b.shout'}
        assert decls['a.b.shout'].kind is DeclarationKind.FUNCTION

    def test_file_without_package_uses_root_namespace(self):
        decls = extract('kotlin', "class Loose\n", 'Loose.kt')
        assert decls['Loose'].namespace == ''


class TestPythonExtraction:
    """Python declarations use the module as qualifier and the package as namespace."""

    def test_module_level_declarations(self):
        code = """
        LIMIT = 10

        class Helper:
            kind = "helper"

            def run(self):
                pass

        async def fetch():
            pass
        """
        decls = extract('python', code, 'a/b/helper.py')

        assert decls['a.b.helper.LIMIT'].kind is DeclarationKind.FIELD
        assert decls['a.b.helper.Helper'].kind is DeclarationKind.TYPE
        assert decls['a.b.helper.Helper.kind'].kind is DeclarationKind.FIELD
        assert decls['a.b.helper.Helper.run'].parent_type == 'a.b.helper.Helper'
        assert decls['a.b.helper.fetch'].kind is DeclarationKind.FUNCTION
        assert all(d.namespace == 'a.b' for d in decls.values())

    def test_package_init_namespace(self):
        decls = extract('python', "VERSION = '1'\n", 'a/b/__init__.py')
        assert decls['a.b.VERSION'].namespace == 'a.b'

    def test_function_bodies_are_local(self):
        code = """
        def outer():
            inner_value = 1

            def inner():
                pass

            class Local:
                pass
        """
        decls = extract('python', code, 'pkg/mod.py')
        assert set(decls) == {'pkg.mod.outer'}

    def test_conditional_definitions_are_extracted(self):
        code = """
        try:
            import fast
        except ImportError:
            fast = None

        if True:
            def fallback():
                pass
        """
        decls = extract('python', code, 'pkg/mod.py')
        assert 'pkg.mod.fast' in decls
        assert 'pkg.mod.fallback' in decls

    def test_naming_convention_visibility(self):
        code = """
        def public():
            pass

        def _private():
            pass

        class Box:
            def __init__(self):
                pass

            def _hook(self):
                pass

            def __mangled(self):
                pass
        """
        decls = extract('python', code, 'pkg/mod.py')
        assert decls['pkg.mod.public'].visibility is Visibility.PUBLIC
        assert decls['pkg.mod._private'].visibility is Visibility.PRIVATE
        assert decls['pkg.mod.Box.__init__'].visibility is Visibility.UNKNOWN
        assert decls['pkg.mod.Box._hook'].visibility is Visibility.PROTECTED
        assert decls['pkg.mod.Box.__mangled'].visibility is Visibility.PRIVATE

    def test_decorator_marker(self):
        code = """
        import markers
        from markers import package_private

        @package_private
        def helper():
            pass

        @markers.package_private()
        class Thing:
            pass

        @staticmethod
        def plain():
            pass
        """
        decls = extract('python', code, 'pkg/mod.py')
        assert decls['pkg.mod.helper'].already_marked
        assert decls['pkg.mod.Thing'].already_marked
        assert not decls['pkg.mod.plain'].already_marked

    def test_chained_assignment_and_first_definition_wins(self):
        code = """
        A = B = 1

        def handler():
            pass

        handler = None
        """
        decls = extract('python', code, 'pkg/mod.py')
        assert 'pkg.mod.A' in decls
        assert 'pkg.mod.B' in decls
        assert decls['pkg.mod.handler'].kind is DeclarationKind.FUNCTION


def test_unsupported_dialect():
    """Unknown dialects are rejected up front."""
    with pytest.raises(ValueError, match="Unsupported dialect"):
        DeclarationExtractor('cobol')
