"""Records shared by the analysis stages: declarations, visibilities and usages."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


# Display label for declarations living outside any package/namespace
ROOT_NAMESPACE_LABEL = "<root>"


class Visibility(Enum):
    """Visibility of a declaration, independent of the source dialect."""
    PUBLIC = "public"
    SCOPED = "internal"  # module/assembly scoped (Kotlin `internal`)
    NAMESPACE_PRIVATE = "package-private"
    PRIVATE = "private"
    PROTECTED = "protected"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "Visibility":
        """Parse a visibility from its label or member name.

        Accepts both the display label (``internal``, ``package-private``) and the
        member name (``SCOPED``, ``namespace_private``), case-insensitively.

        Args:
            value: Text to parse

        Returns:
            Matching Visibility

        Raises:
            ValueError: If the text names no visibility
        """
        normalized = value.strip().lower().replace("_", "-")
        for member in cls:
            if normalized in (member.value, member.name.lower().replace("_", "-")):
                return member
        raise ValueError(f"Unknown visibility: {value!r}")


class DeclarationKind(Enum):
    """Kind of a referenceable declaration."""
    TYPE = "class"
    FUNCTION = "function"
    FIELD = "property"


@dataclass(frozen=True)
class Declaration:
    """A namespace-scoped declaration that could be narrowed to namespace-private."""
    qualified_name: str
    namespace: str
    name: str
    kind: DeclarationKind
    visibility: Visibility
    file_path: str
    line: int
    already_marked: bool = False
    parent_type: Optional[str] = None  # qualified name of the enclosing type, if any

    @property
    def is_member(self) -> bool:
        return self.parent_type is not None


@dataclass(frozen=True)
class Usage:
    """One resolved reference from a namespace to a known declaration."""
    target_qualified_name: str
    referencing_namespace: str
    file_path: str
    line: int


def display_namespace(namespace: str) -> str:
    """Return a printable namespace name (the root namespace is empty)."""
    return namespace if namespace else ROOT_NAMESPACE_LABEL


@dataclass(frozen=True)
class ParseFailure:
    """A file that produced no usable syntax tree and was left out of the run."""
    file_path: str
    reason: str


@dataclass(frozen=True)
class RecoveredError:
    """A syntax error the parser recovered from.

    The erroneous region is skipped; the rest of the file is still analyzed.
    """
    file_path: str
    reason: str


@dataclass(frozen=True)
class AnalysisResult:
    """Everything extracted and resolved in one run, in deterministic file order."""
    declarations: Tuple[Declaration, ...] = ()
    usages: Tuple[Usage, ...] = ()
    failures: Tuple[ParseFailure, ...] = ()
    recovered: Tuple[RecoveredError, ...] = ()
