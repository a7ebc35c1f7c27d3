# Test type: Configuration
# Validation to be executed: Shared fixtures for all test modules
# Command: pytest test/ -v (this file is auto-loaded by pytest)

"""Shared pytest fixtures for the CHRONYX tax API test suite."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from chronyx_tax.auth import CurrentUser, get_current_user
from chronyx_tax.main import app
from chronyx_tax.services.rule_repository import (
    InMemoryRuleRepository,
    default_repository,
    use_repository,
)

TEST_USER = CurrentUser(id="user-123", email="asha@example.com")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def builtin_rules():
    """Every test starts from the built-in FY2025_26 / FY2026_27 tables."""
    repo = default_repository()
    use_repository(repo)
    yield repo
    use_repository(default_repository())


@pytest.fixture
async def client():
    """Authenticated async HTTP client bound to the FastAPI app."""
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
async def anonymous_client():
    """Client without the identity override: exercises real header checks."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


# ── Rule fixtures ────────────────────────────────────────────────────────

@pytest.fixture
def repo() -> InMemoryRuleRepository:
    return default_repository()


@pytest.fixture
def new_rules(repo):
    return repo.get_regime("FY2025_26", "new")


@pytest.fixture
def old_rules(repo):
    return repo.get_regime("FY2025_26", "old")


@pytest.fixture
def old_limits(repo):
    return repo.get_deduction_limits("FY2025_26")


@pytest.fixture
def half_rupee_repo() -> InMemoryRuleRepository:
    """A toy regime whose second slab yields ₹0.50 of tax on ₹10."""
    return InMemoryRuleRepository({
        "FY_TEST": {
            "display_name": "Test year",
            "regimes": {
                "new": {
                    "display_name": "Toy regime",
                    "standard_deduction": 0,
                    "rebate_limit": 0,
                    "rebate_max": 0,
                    "allows_deductions": False,
                    "slabs": [(0, 10, 0), (10, 20, 5), (20, None, 10)],
                },
            },
        },
    })
