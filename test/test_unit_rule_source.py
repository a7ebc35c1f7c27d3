# Test type: Unit Test
# Validation to be executed: Validates the database rule source: seeding empty
#   tables, snapshotting rows into an in-memory repository, and the startup
#   choice between database and built-in rules.
# Command: pytest test/test_unit_rule_source.py -v

"""Unit tests for the database-backed parts of chronyx_tax.services.rule_repository."""

from contextlib import asynccontextmanager

import pytest

from chronyx_tax import database
from chronyx_tax.config import settings
from chronyx_tax.errors import NotFoundError
from chronyx_tax.models.db_models import FinancialYearRow
from chronyx_tax.services.rule_repository import (
    DEFAULT_RULES,
    REGIME_CODES,
    InMemoryRuleRepository,
    active_repository,
    configure_rule_source,
    default_repository,
    load_rules_from_db,
    seed_default_rules,
    use_repository,
)

pytestmark = pytest.mark.anyio


class _Result:
    def __init__(self, rows):
        self._rows = rows

    def scalars(self):
        return self

    def all(self):
        return list(self._rows)


class RuleTableSession:
    """Keeps added financial-year rows in memory and serves them to queries."""

    def __init__(self):
        self.rows = []

    def add(self, row):
        self.rows.append(row)

    async def flush(self):
        pass

    async def scalar(self, stmt):
        return len(self.rows)

    async def execute(self, stmt):
        return _Result(self.rows)


@pytest.fixture
async def seeded():
    session = RuleTableSession()
    assert await seed_default_rules(session) is True
    return session


@pytest.fixture
def toy_repo():
    return InMemoryRuleRepository({
        "FY_TOY": {
            "regimes": {"new": {"display_name": "Toy", "slabs": [(0, None, 1)]}},
        },
    })


class TestSeedAndLoad:
    async def test_seed_writes_every_year(self, seeded):
        rows = seeded.rows
        assert all(isinstance(r, FinancialYearRow) for r in rows)
        assert [r.code for r in rows] == list(DEFAULT_RULES)
        first = rows[0]
        assert sorted(r.code for r in first.regimes) == ["new", "old"]
        assert {d.section_code for d in first.deductions} == set(DEFAULT_RULES["FY2025_26"]["deduction_limits"])

    async def test_seed_skips_populated_tables(self, seeded):
        assert await seed_default_rules(seeded) is False
        assert len(seeded.rows) == len(DEFAULT_RULES)

    async def test_snapshot_matches_built_in_rules(self, seeded):
        loaded = await load_rules_from_db(seeded)
        builtin = default_repository()

        assert loaded.list_financial_years() == builtin.list_financial_years()
        for fy in DEFAULT_RULES:
            assert loaded.get_deduction_limits(fy) == builtin.get_deduction_limits(fy)
            for code in REGIME_CODES:
                assert loaded.get_regime(fy, code) == builtin.get_regime(fy, code)

    async def test_snapshot_keeps_inactive_years_unavailable(self, seeded):
        seeded.rows[0].is_active = False
        loaded = await load_rules_from_db(seeded)
        with pytest.raises(NotFoundError):
            loaded.get_regime("FY2025_26", "new")
        assert [fy.code for fy in loaded.list_financial_years()] == ["FY2026_27"]


class TestConfigureRuleSource:
    async def test_database_without_postgres_falls_back(self, monkeypatch, toy_repo):
        monkeypatch.setattr(settings, "RULES_SOURCE", "database")
        use_repository(toy_repo)

        repo = await configure_rule_source()

        assert repo is active_repository()
        assert [fy.code for fy in repo.list_financial_years()] == list(DEFAULT_RULES)

    async def test_database_source_uses_snapshot(self, monkeypatch, seeded):
        seeded.rows[0].is_active = False

        @asynccontextmanager
        async def fake_session():
            yield seeded

        monkeypatch.setattr(settings, "RULES_SOURCE", "database")
        monkeypatch.setattr(database, "get_session", fake_session)

        repo = await configure_rule_source()

        assert repo is active_repository()
        assert [fy.code for fy in repo.list_financial_years()] == ["FY2026_27"]

    async def test_unknown_source_uses_built_in_rules(self, monkeypatch, toy_repo):
        monkeypatch.setattr(settings, "RULES_SOURCE", "redis")
        use_repository(toy_repo)

        repo = await configure_rule_source()
        assert repo.get_regime("FY2025_26", "new").regime.standard_deduction == 75_000
