"""Fixtures for resolver tests."""

from __future__ import annotations

from typing import Callable

import pytest

from lockstep.core.requirements import Requirement
from lockstep.core.resolver import InMemoryProvider, Resolution, Resolver


@pytest.fixture
def make_resolver(linux_env: dict[str, str]) -> Callable[..., Resolver]:
    """Build a resolver over an in-memory package table."""

    def _make(packages: dict, environment: dict[str, str] | None = None, **kwargs) -> Resolver:
        provider = InMemoryProvider(packages)
        return Resolver(provider, environment or linux_env, workers=1, **kwargs)

    return _make


@pytest.fixture
def resolve_with(make_resolver: Callable[..., Resolver]) -> Callable[..., Resolution]:
    """Resolve root requirement strings against an in-memory package table."""

    def _resolve(packages: dict, roots: list[str], **kwargs) -> Resolution:
        preferred = kwargs.pop("preferred", None)
        resolver = make_resolver(packages, **kwargs)
        return resolver.resolve([Requirement.parse(r) for r in roots], preferred=preferred)

    return _resolve
