"""Configuration management for pkgscout.

Loads environment variables (and a project ``.env``) and validates the options
handed to the analysis engine.
"""
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

from pkgscout.analyzer.dialects import get_dialect
from pkgscout.analyzer.models import Visibility

__version__ = "1.2.0"

DEFAULT_OUTPUT = "build/reports/package-private-candidates.txt"

MARKER_PATTERN = re.compile(r'^[A-Za-z_]\w*$')

TRUE_VALUES = {'1', 'true', 'yes', 'on'}
FALSE_VALUES = {'0', 'false', 'no', 'off'}


class ConfigurationError(ValueError):
    """Invalid analysis options, raised before any file is analyzed."""


@dataclass(frozen=True)
class AnalysisOptions:
    """Validated options for one analysis run."""
    dialect: str = 'kotlin'
    include_public: bool = True
    include_internal: bool = True
    marker: Optional[str] = None
    default_visibility: Optional[Visibility] = None
    workers: int = 1


def parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def validate_options(dialect: str = 'kotlin', include_public: bool = True,
                     include_internal: bool = True, marker: Optional[str] = None,
                     default_visibility=None, workers=1) -> AnalysisOptions:
    """Validate raw option values into AnalysisOptions.

    No flag combination is rejected today; every value is checked on its own.

    Args:
        dialect: Source dialect name
        include_public: Consider public declarations
        include_internal: Consider internal declarations
        marker: Narrowing-marker short name, or None for the dialect's
        default_visibility: Visibility (or its label) of undecorated declarations
        workers: Concurrent files per phase (int or numeric string)

    Returns:
        AnalysisOptions

    Raises:
        ConfigurationError: If any value is invalid
    """
    try:
        resolved = get_dialect(dialect)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if marker is not None:
        marker = marker.strip().lstrip('@')
        if not MARKER_PATTERN.match(marker):
            raise ConfigurationError(f"Marker must be a single identifier, got {marker!r}")

    if default_visibility is not None and not isinstance(default_visibility, Visibility):
        try:
            default_visibility = Visibility.parse(str(default_visibility))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    try:
        workers = int(workers)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Workers must be an integer, got {workers!r}") from e
    if workers < 1:
        raise ConfigurationError(f"Workers must be at least 1, got {workers}")

    return AnalysisOptions(
        dialect=resolved.name,
        include_public=include_public,
        include_internal=include_internal,
        marker=marker,
        default_visibility=default_visibility,
        workers=workers,
    )


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, project_root: str | Path = "."):
        """Initialize config by loading the project's .env file.

        Args:
            project_root: Directory holding the optional .env file
        """
        self.project_root = Path(project_root)
        load_dotenv(self.project_root / ".env")

    @property
    def dialect(self) -> str:
        """Get source dialect (PKGSCOUT_DIALECT, default kotlin)."""
        return os.getenv("PKGSCOUT_DIALECT", "kotlin")

    @property
    def marker(self) -> Optional[str]:
        """Get narrowing-marker short name.

        Returns:
            Marker from PKGSCOUT_MARKER, or None to use the dialect's
        """
        return os.getenv("PKGSCOUT_MARKER") or None

    @property
    def include_public(self) -> bool:
        return parse_bool("PKGSCOUT_INCLUDE_PUBLIC", os.getenv("PKGSCOUT_INCLUDE_PUBLIC", "true"))

    @property
    def include_internal(self) -> bool:
        return parse_bool("PKGSCOUT_INCLUDE_INTERNAL", os.getenv("PKGSCOUT_INCLUDE_INTERNAL", "true"))

    @property
    def default_visibility(self) -> Optional[str]:
        return os.getenv("PKGSCOUT_DEFAULT_VISIBILITY") or None

    @property
    def output_path(self) -> str:
        """Get report destination.

        Relative paths are resolved against the analyzed project.

        Returns:
            Output path string
        """
        return os.getenv("PKGSCOUT_OUTPUT", DEFAULT_OUTPUT)

    @property
    def workers(self) -> str:
        return os.getenv("PKGSCOUT_WORKERS", "1")

    def analysis_options(self) -> AnalysisOptions:
        """Validated options from the environment.

        Raises:
            ConfigurationError: If an environment value is invalid
        """
        return validate_options(
            dialect=self.dialect,
            include_public=self.include_public,
            include_internal=self.include_internal,
            marker=self.marker,
            default_visibility=self.default_visibility,
            workers=self.workers,
        )


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance for the current directory.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
