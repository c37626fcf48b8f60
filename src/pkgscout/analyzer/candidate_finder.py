"""Candidate engine: decide which declarations can be narrowed to namespace-private."""
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from .models import AnalysisResult, Declaration, DeclarationKind, Visibility, display_namespace
from .usage_graph import UsageGraph


SEPARATOR = "—"

EntryPointPredicate = Callable[[Declaration], bool]


def conventional_entry_point(names: Iterable[str] = ('main',)) -> EntryPointPredicate:
    """Entry-point predicate for free functions with a conventional name.

    Args:
        names: Simple names the host runtime invokes directly

    Returns:
        Predicate matching top-level functions with one of those names
    """
    entry_names = frozenset(names)

    def is_entry_point(declaration: Declaration) -> bool:
        return (declaration.kind is DeclarationKind.FUNCTION
                and not declaration.is_member
                and declaration.name in entry_names)

    return is_entry_point


@dataclass(frozen=True)
class Candidate:
    """A declaration that is only referenced from its own namespace, if at all."""
    declaration: Declaration
    referencing_namespaces: FrozenSet[str]
    usage_sites: Tuple[Tuple[str, int], ...] = ()

    @property
    def usage_note(self) -> str:
        if not self.referencing_namespaces:
            return "Unused"
        # candidates are referenced by at most their own namespace
        namespace = next(iter(self.referencing_namespaces))
        return f"Only used in package: {display_namespace(namespace)}"

    def format(self) -> str:
        d = self.declaration
        return (f"{d.qualified_name}  ({d.kind.value})  {d.visibility.value}  "
                f"{SEPARATOR} {d.file_path}:{d.line}")


class CandidateFinder:
    """Apply eligibility and usage-locality rules to an analysis result."""

    def __init__(self, include_public: bool = True, include_internal: bool = True,
                 is_entry_point: Optional[EntryPointPredicate] = None):
        """Initialize the finder.

        Args:
            include_public: Consider public declarations
            include_internal: Consider internal (scoped) declarations
            is_entry_point: Predicate for declarations the runtime calls directly
        """
        self.include_public = include_public
        self.include_internal = include_internal
        self.is_entry_point = is_entry_point or conventional_entry_point()

    def is_eligible(self, declaration: Declaration) -> bool:
        if declaration.already_marked:
            return False
        if declaration.visibility in (Visibility.PRIVATE, Visibility.PROTECTED):
            return False
        if declaration.visibility is Visibility.PUBLIC:
            allowed = self.include_public
        elif declaration.visibility is Visibility.SCOPED:
            allowed = self.include_internal
        else:
            allowed = False
        return allowed and not self.is_entry_point(declaration)

    def find_candidates(self, result: AnalysisResult,
                        usages: Optional[UsageGraph] = None) -> List[Candidate]:
        """Find every declaration referenced only from its declaring namespace.

        Args:
            result: Declarations and usages of one run
            usages: Pre-aggregated usage graph (built from the result if omitted)

        Returns:
            Candidates ordered by namespace, then qualified name
        """
        graph = usages if usages is not None else UsageGraph.from_usages(result.usages)
        candidates = []
        for declaration in result.declarations:
            if not self.is_eligible(declaration):
                continue
            namespaces = graph.referencing_namespaces(declaration.qualified_name)
            if not namespaces or namespaces == {declaration.namespace}:
                sites = tuple((file_path, line) for _, file_path, line
                              in graph.usage_sites(declaration.qualified_name))
                candidates.append(Candidate(declaration, namespaces, sites))

        candidates.sort(key=lambda c: (c.declaration.namespace, c.declaration.qualified_name))
        return candidates
