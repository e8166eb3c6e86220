"""Shared test fixtures for tx3-mcp."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

    from tests.fixtures.protocols import FakeCompiler, FakeResolver, StaticSource


@pytest.fixture
def compiler() -> FakeCompiler:
    """Compiler knowing the ``acme`` protocol (swap, mint)."""
    from tests.fixtures.protocols import FakeCompiler

    return FakeCompiler()


@pytest.fixture
def source() -> StaticSource:
    """Source holding only the ``acme`` protocol."""
    from tests.fixtures.protocols import StaticSource

    return StaticSource()


@pytest.fixture
def resolver() -> FakeResolver:
    from tests.fixtures.protocols import FakeResolver

    return FakeResolver()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep host config files and resolver env vars out of tests."""
    for var in ("TRP_URL", "TRP_KEY", "TX3_REGISTRY_URL", "ADDRESS", "PORT", "TX3_MCP_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
