"""Tests for candidate eligibility, locality and ordering."""
from pkgscout.analyzer.candidate_finder import Candidate, CandidateFinder, conventional_entry_point
from pkgscout.analyzer.models import (
    AnalysisResult,
    Declaration,
    DeclarationKind,
    Usage,
    Visibility,
)


def declaration(qualified_name, kind=DeclarationKind.TYPE, visibility=Visibility.PUBLIC,
                marked=False, parent_type=None, line=3):
    namespace, _, name = qualified_name.rpartition('.')
    if parent_type is not None:
        namespace = parent_type.rpartition('.')[0]
    return Declaration(
        qualified_name=qualified_name,
        namespace=namespace,
        name=name,
        kind=kind,
        visibility=visibility,
        file_path=qualified_name.replace('.', '/') + '.kt',
        line=line,
        already_marked=marked,
        parent_type=parent_type,
    )


def usage(target, namespace):
    return Usage(target_qualified_name=target, referencing_namespace=namespace,
                 file_path='x.kt', line=1)


def names(candidates):
    return [c.declaration.qualified_name for c in candidates]


class TestLocality:
    """A declaration is a candidate iff only its own namespace references it."""

    def test_same_namespace_usage(self):
        result = AnalysisResult(
            declarations=(declaration('a.b.Helper'),),
            usages=(usage('a.b.Helper', 'a.b'), usage('a.b.Helper', 'a.b')),
        )
        candidates = CandidateFinder().find_candidates(result)
        assert names(candidates) == ['a.b.Helper']
        assert candidates[0].referencing_namespaces == frozenset({'a.b'})

    def test_usage_sites_are_attached(self):
        result = AnalysisResult(
            declarations=(declaration('a.b.Helper'),),
            usages=(
                Usage('a.b.Helper', 'a.b', 'a/b/Service.kt', 9),
                Usage('a.b.Helper', 'a.b', 'a/b/Client.kt', 4),
            ),
        )
        candidates = CandidateFinder().find_candidates(result)
        assert candidates[0].usage_sites == (('a/b/Client.kt', 4), ('a/b/Service.kt', 9))

    def test_unused_declaration(self):
        result = AnalysisResult(declarations=(declaration('a.b.Helper'),))
        candidates = CandidateFinder().find_candidates(result)
        assert candidates[0].referencing_namespaces == frozenset()
        assert candidates[0].usage_note == "Unused"

    def test_cross_namespace_usage(self):
        result = AnalysisResult(
            declarations=(declaration('a.b.Helper'),),
            usages=(usage('a.b.Helper', 'a.b'), usage('a.b.Helper', 'a.c')),
        )
        assert CandidateFinder().find_candidates(result) == []

    def test_only_foreign_usage(self):
        result = AnalysisResult(
            declarations=(declaration('a.b.Helper'),),
            usages=(usage('a.b.Helper', 'a.c'),),
        )
        assert CandidateFinder().find_candidates(result) == []


class TestEligibility:
    """Eligibility filter applied before locality."""

    def test_marked_declarations_are_excluded(self):
        result = AnalysisResult(declarations=(declaration('a.b.Helper', marked=True),))
        assert CandidateFinder().find_candidates(result) == []

    def test_private_and_protected_are_excluded(self):
        result = AnalysisResult(declarations=(
            declaration('a.b.Hidden', visibility=Visibility.PRIVATE),
            declaration('a.b.Base.hook', kind=DeclarationKind.FUNCTION,
                        visibility=Visibility.PROTECTED, parent_type='a.b.Base'),
        ))
        finder = CandidateFinder(include_public=True, include_internal=True)
        assert finder.find_candidates(result) == []

    def test_unknown_and_namespace_private_are_excluded(self):
        result = AnalysisResult(declarations=(
            declaration('pkg.mod.Box.__init__', kind=DeclarationKind.FUNCTION,
                        visibility=Visibility.UNKNOWN, parent_type='pkg.mod.Box'),
            declaration('a.b.Already', visibility=Visibility.NAMESPACE_PRIVATE),
        ))
        assert CandidateFinder().find_candidates(result) == []

    def test_include_public_flag(self):
        result = AnalysisResult(declarations=(
            declaration('a.b.Open'),
            declaration('a.b.Scoped', visibility=Visibility.SCOPED),
        ))
        candidates = CandidateFinder(include_public=False).find_candidates(result)
        assert names(candidates) == ['a.b.Scoped']

    def test_include_internal_flag(self):
        result = AnalysisResult(declarations=(
            declaration('a.b.Open'),
            declaration('a.b.Scoped', visibility=Visibility.SCOPED),
        ))
        candidates = CandidateFinder(include_internal=False).find_candidates(result)
        assert names(candidates) == ['a.b.Open']

    def test_both_flags_off(self):
        result = AnalysisResult(declarations=(declaration('a.b.Open'),))
        assert CandidateFinder(include_public=False, include_internal=False).find_candidates(result) == []


class TestEntryPoints:
    """Entry points are excluded even without usages."""

    def test_top_level_main_is_excluded(self):
        result = AnalysisResult(declarations=(
            declaration('com.example.main', kind=DeclarationKind.FUNCTION),
        ))
        assert CandidateFinder().find_candidates(result) == []

    def test_member_named_main_is_not_an_entry_point(self):
        result = AnalysisResult(declarations=(
            declaration('com.example.App.main', kind=DeclarationKind.FUNCTION, parent_type='com.example.App'),
        ))
        assert names(CandidateFinder().find_candidates(result)) == ['com.example.App.main']

    def test_type_named_main_is_not_an_entry_point(self):
        result = AnalysisResult(declarations=(declaration('com.example.main'),))
        assert names(CandidateFinder().find_candidates(result)) == ['com.example.main']

    def test_custom_predicate(self):
        result = AnalysisResult(declarations=(
            declaration('app.start', kind=DeclarationKind.FUNCTION),
            declaration('app.main', kind=DeclarationKind.FUNCTION),
        ))
        finder = CandidateFinder(is_entry_point=conventional_entry_point(['start']))
        assert names(finder.find_candidates(result)) == ['app.main']


class TestOrderingAndFormat:
    """Deterministic ordering and candidate rendering."""

    def test_grouped_by_namespace_then_name(self):
        decls = (
            declaration('b.Zeta'),
            declaration('a.Beta'),
            declaration('b.Alpha'),
            declaration('a.Alpha'),
            declaration('a.Alpha.run', kind=DeclarationKind.FUNCTION, parent_type='a.Alpha'),
        )
        expected = ['a.Alpha', 'a.Alpha.run', 'a.Beta', 'b.Alpha', 'b.Zeta']
        assert names(CandidateFinder().find_candidates(AnalysisResult(declarations=decls))) == expected
        reversed_result = AnalysisResult(declarations=tuple(reversed(decls)))
        assert names(CandidateFinder().find_candidates(reversed_result)) == expected

    def test_format(self):
        candidate = Candidate(declaration('com.example.Helper'), frozenset({'com.example'}))
        formatted = candidate.format()
        assert formatted == "com.example.Helper  (class)  public  — com/example/Helper.kt:3"
        assert candidate.usage_note == "Only used in package: com.example"

    def test_root_namespace_note(self):
        candidate = Candidate(declaration('Loose'), frozenset({''}))
        assert candidate.usage_note == "Only used in package: <root>"
