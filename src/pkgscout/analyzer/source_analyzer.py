"""Two-phase analysis of a source tree.

Phase 1 parses every file, extracts its declarations and reads its imports.
Phase 2 resolves references, and only starts once phase 1 has finished for
every file: resolution needs the complete set of known qualified names.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple, Union
from tree_sitter import Node, Tree

from .candidate_finder import Candidate, CandidateFinder, conventional_entry_point
from .dialects import Dialect, get_dialect
from .extractor import DeclarationExtractor, FileScope
from .models import AnalysisResult, Declaration, ParseFailure, RecoveredError, Usage, Visibility
from .parser import LanguageParser
from .reference_tracker import ImportTable, ReferenceResolver, SymbolIndex, package_reexports
from .report import format_report


# Vendored, generated and tool directories never hold project sources
EXCLUDED_DIRS = {
    'build', 'dist', 'out', 'target', 'bin',
    '.gradle', '.idea', '.git', '.kotlin',
    'venv', '.venv', 'env', '.tox', 'site-packages',
    '__pycache__', 'node_modules',
}


@dataclass(frozen=True)
class SourceFile:
    """One input file: an identifier for attribution plus its content.

    Content is either given in memory or read from ``location`` once.
    """
    file_path: str
    content: Optional[Union[bytes, str]] = None
    location: Optional[Path] = None

    def read_bytes(self) -> bytes:
        if isinstance(self.content, str):
            return self.content.encode('utf-8')
        if self.content is not None:
            return self.content
        if self.location is None:
            raise OSError(f"No content or location for {self.file_path}")
        return self.location.read_bytes()


@dataclass(frozen=True)
class _ParsedFile:
    source: SourceFile
    tree: Tree
    scope: FileScope
    declarations: Tuple[Declaration, ...]
    imports: ImportTable
    recovered: Optional[RecoveredError] = None


@dataclass(frozen=True)
class AnalysisReport:
    """Engine output handed to the caller."""
    result: AnalysisResult
    candidates: Tuple[Candidate, ...]
    text: str


def first_syntax_error(root: Node, include_missing: bool = True) -> Optional[Node]:
    """Return the first ERROR (or missing) node in document order."""
    stack = [root]
    while stack:
        current = stack.pop()
        if current.type == 'ERROR' or (include_missing and current.is_missing):
            return current
        if current.has_error:
            for child in reversed(current.children):
                stack.append(child)
    return None


def has_usable_tree(root: Node) -> bool:
    """True unless the parser recovered nothing but error nodes."""
    if root.type == 'ERROR':
        return False
    if not root.has_error:
        return True
    return any(child.type != 'ERROR' and not child.is_extra for child in root.named_children)


class SourceAnalyzer:
    """Extract declarations and usages from a set of source files."""

    def __init__(self, language: str = 'kotlin', marker: Optional[str] = None,
                 default_visibility: Optional[Visibility] = None, workers: int = 1):
        """Initialize the analyzer.

        Args:
            language: Source dialect of every analyzed file
            marker: Narrowing-marker short name (defaults to the dialect's)
            default_visibility: Visibility of undecorated declarations
            workers: Files processed concurrently within each phase
        """
        self.dialect = get_dialect(language)
        self.marker = marker
        self.default_visibility = default_visibility
        self.workers = max(1, workers)
        self.resolver = ReferenceResolver(self.dialect.name)

    def analyze(self, sources: Iterable[SourceFile]) -> AnalysisResult:
        """Run both phases over the given files.

        Files that cannot be read or decoded, or whose tree holds nothing but
        syntax errors, are reported as failures and contribute neither
        declarations nor usages. Files with recoverable syntax errors are still
        analyzed with the erroneous regions skipped.

        Args:
            sources: Files to analyze, in any order

        Returns:
            AnalysisResult in file-identifier order
        """
        ordered = sorted(sources, key=lambda s: s.file_path)

        phase_one = self._map(self._parse_file, ordered)
        parsed: List[_ParsedFile] = [item for item in phase_one if isinstance(item, _ParsedFile)]
        failures = tuple(item for item in phase_one if isinstance(item, ParseFailure))
        recovered = tuple(item.recovered for item in parsed if item.recovered is not None)

        # Barrier: every file's declarations are known from here on
        declarations: List[Declaration] = []
        seen: Set[str] = set()
        reexports = {}
        for item in parsed:
            for declaration in item.declarations:
                if declaration.qualified_name not in seen:
                    seen.add(declaration.qualified_name)
                    declarations.append(declaration)
            reexports.update(package_reexports(item.scope, item.imports))
        index = SymbolIndex(seen, reexports)

        phase_two = self._map(lambda item: self._resolve_file(item, index), parsed)
        usages: List[Usage] = [usage for file_usages in phase_two for usage in file_usages]

        return AnalysisResult(declarations=tuple(declarations), usages=tuple(usages),
                              failures=failures, recovered=recovered)

    def _map(self, task: Callable, items: Sequence) -> List:
        """Apply a per-file task, concurrently when workers > 1, keeping input order."""
        if self.workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                return list(executor.map(task, items))
        return [task(item) for item in items]

    def _parse_file(self, source: SourceFile) -> Union[_ParsedFile, ParseFailure]:
        try:
            content = source.read_bytes()
            content.decode('utf-8')
        except UnicodeDecodeError as e:
            return ParseFailure(source.file_path, f"invalid UTF-8 at byte {e.start}")
        except OSError as e:
            return ParseFailure(source.file_path, f"unreadable: {e}")

        # One parser per task; tree-sitter parsers are not shared across threads
        tree = LanguageParser(self.dialect.name).parse_source(content)
        if not has_usable_tree(tree.root_node):
            error = first_syntax_error(tree.root_node)
            line = error.start_point[0] + 1 if error is not None else 1
            return ParseFailure(source.file_path, f"syntax error at line {line}")

        # Error regions are skipped downstream; zero-width missing tokens are not reported
        recovered = None
        error = first_syntax_error(tree.root_node, include_missing=False)
        if error is not None:
            recovered = RecoveredError(source.file_path, f"syntax error at line {error.start_point[0] + 1}")

        extractor = DeclarationExtractor(self.dialect.name, self.marker, self.default_visibility)
        scope = extractor.file_scope(tree, source.file_path)
        return _ParsedFile(
            source=source,
            tree=tree,
            scope=scope,
            declarations=tuple(extractor.extract_declarations(tree, source.file_path, scope)),
            imports=self.resolver.collect_imports(tree, scope),
            recovered=recovered,
        )

    def _resolve_file(self, item: _ParsedFile, index: SymbolIndex) -> List[Usage]:
        return self.resolver.resolve_file(item.tree, item.scope, item.source.file_path,
                                          index, item.imports)


def discover_source_roots(project_root: Path, dialect: Dialect) -> List[Path]:
    """Conventional source roots of a project, or the project root itself.

    Args:
        project_root: Project directory
        dialect: Source dialect

    Returns:
        Existing source directories
    """
    roots: List[Path] = []
    for relative in dialect.conventional_roots:
        candidate = project_root / relative
        if candidate.is_dir() and candidate not in roots:
            roots.append(candidate)

    if dialect.name == 'kotlin':
        # Multiplatform and test source sets: src/<set>/kotlin
        for candidate in sorted((project_root / 'src').glob('*/kotlin')):
            if candidate.is_dir() and candidate not in roots:
                roots.append(candidate)

    return roots or [project_root]


def collect_source_files(roots: Iterable[Path], dialect: Dialect,
                         project_root: Optional[Path] = None) -> List[SourceFile]:
    """Collect dialect source files under the given roots.

    Identifiers are posix paths relative to the source root, which is what
    Python module paths derive from. Dialects that declare their namespace in
    the file use paths relative to the project root instead when one is given.

    Args:
        roots: Source directories
        dialect: Source dialect
        project_root: Project directory for attribution

    Returns:
        SourceFile list sorted by identifier
    """
    files = {}
    visited: Set[Path] = set()
    for root in roots:
        base = project_root if (dialect.declares_namespace and project_root is not None) else root
        for path in sorted(root.rglob('*')):
            if path.suffix not in dialect.extensions or not path.is_file():
                continue
            relative = path.relative_to(root)
            if any(part in EXCLUDED_DIRS for part in relative.parts[:-1]):
                continue
            resolved = path.resolve()
            if resolved in visited:
                continue
            visited.add(resolved)
            try:
                file_id = path.relative_to(base).as_posix()
            except ValueError:
                file_id = relative.as_posix()
            files.setdefault(file_id, SourceFile(file_path=file_id, location=path))
    return [files[key] for key in sorted(files)]


def run_analysis(sources: Iterable[SourceFile], options) -> AnalysisReport:
    """Analyze sources and render the candidate report.

    Args:
        sources: Files to analyze
        options: Validated AnalysisOptions

    Returns:
        AnalysisReport with result, ordered candidates and report text
    """
    dialect = get_dialect(options.dialect)
    analyzer = SourceAnalyzer(
        language=dialect.name,
        marker=options.marker,
        default_visibility=options.default_visibility,
        workers=options.workers,
    )
    result = analyzer.analyze(sources)
    finder = CandidateFinder(
        include_public=options.include_public,
        include_internal=options.include_internal,
        is_entry_point=conventional_entry_point(dialect.entry_points),
    )
    candidates = finder.find_candidates(result)
    return AnalysisReport(
        result=result,
        candidates=tuple(candidates),
        text=format_report(candidates, result.failures),
    )
