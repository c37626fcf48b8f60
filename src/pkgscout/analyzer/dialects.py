"""Source dialects understood by the analyzer.

A dialect bundles everything that differs between source languages but is not
grammar traversal: which files belong to it, what an undecorated declaration's
visibility is, which annotation/decorator marks a declaration as
namespace-private, and which free functions the runtime calls directly.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from .models import Visibility


@dataclass(frozen=True)
class Dialect:
    """Static description of one source dialect."""
    name: str
    extensions: Tuple[str, ...]
    default_visibility: Visibility
    marker: str
    entry_points: FrozenSet[str]
    conventional_roots: Tuple[str, ...]
    declares_namespace: bool  # files carry their own namespace header


KOTLIN = Dialect(
    name='kotlin',
    extensions=('.kt', '.kts'),
    default_visibility=Visibility.PUBLIC,
    marker='PackagePrivate',
    entry_points=frozenset({'main'}),
    conventional_roots=('src/main/kotlin', 'src/main/java', 'src/commonMain/kotlin'),
    declares_namespace=True,
)

PYTHON = Dialect(
    name='python',
    extensions=('.py', '.pyi'),
    default_visibility=Visibility.PUBLIC,
    marker='package_private',
    entry_points=frozenset({'main'}),
    conventional_roots=('src',),
    declares_namespace=False,
)

DIALECTS: Dict[str, Dialect] = {dialect.name: dialect for dialect in (KOTLIN, PYTHON)}


def get_dialect(name: str) -> Dialect:
    """Look up a dialect by name.

    Args:
        name: Dialect name (``kotlin`` or ``python``)

    Returns:
        The Dialect

    Raises:
        ValueError: If the dialect is not supported
    """
    dialect = DIALECTS.get(name.strip().lower()) if name else None
    if dialect is None:
        supported = ", ".join(sorted(DIALECTS))
        raise ValueError(f"Unsupported dialect: {name!r} (supported: {supported})")
    return dialect
