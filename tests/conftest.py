"""Shared fixtures."""
import pytest

ENV_VARS = (
    "PKGSCOUT_DIALECT", "PKGSCOUT_MARKER", "PKGSCOUT_INCLUDE_PUBLIC", "PKGSCOUT_INCLUDE_INTERNAL",
    "PKGSCOUT_DEFAULT_VISIBILITY", "PKGSCOUT_OUTPUT", "PKGSCOUT_WORKERS",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every pkgscout variable, including ones a .env file sets during the test."""
    for name in ENV_VARS:
        # setenv first so the teardown also removes values loaded later
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
