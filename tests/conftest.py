"""Shared fixtures for dynamic_srv tests."""

from __future__ import annotations

import pytest

from tests.utils import FakeDns, FakeRuntime, ScriptedResolver


@pytest.fixture
def fake_dns() -> FakeDns:
    return FakeDns()


@pytest.fixture
def resolver() -> ScriptedResolver:
    return ScriptedResolver()


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()
