"""
Unit tests for CrossEntityValidationService rules and its result cache.

Entities are plain namespaces; rules that need the database are not
exercised here.
"""

from types import SimpleNamespace

import pytest

from src.modules.staff.roles import StaffRoleHierarchy
from src.modules.validation.cross_entity import CrossEntityRule, CrossEntityValidationService, RuleContext
from src.modules.validation.types import IssueSeverity, ValidationIssue
from tests.conftest import GUILD_ID

MANAGER_ID = 4000
OTHER_MANAGER_ID = 4001
STAFF_USER_ID = 3000


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _config(mocker, **values):
    config = mocker.MagicMock()
    config.get = mocker.MagicMock(side_effect=lambda key, default=None: values.get(key, default))
    return config


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cross_entity(mocker, mock_event_bus, mock_logger, clock):
    config = _config(
        mocker,
        **{"validation.cross_entity_cache_max_entries": 2, "validation.cross_entity_cache_ttl_seconds": 60},
    )
    return CrossEntityValidationService(
        config, mock_event_bus, mock_logger, role_hierarchy=StaffRoleHierarchy(), clock=clock
    )


def _entry(action_type, promoted_by):
    return {"action_type": action_type, "promoted_by": promoted_by, "from_role": "Paralegal", "to_role": "Paralegal"}


def _staff(*history):
    return SimpleNamespace(id=1, user_id=STAFF_USER_ID, promotion_history=list(history))


def _ctx(mock_session):
    return RuleContext(guild_id=GUILD_ID, session=mock_session)


@pytest.mark.unit
class TestPromotionHistoryRule:
    """Self-promotion is critical; back-to-back promotions by one manager warn."""

    async def test_hire_then_promotion_by_same_manager_is_clean(self, cross_entity, mock_session):
        staff = _staff(_entry("hire", MANAGER_ID), _entry("promotion", MANAGER_ID))

        issues = await cross_entity._check_promotion_history(staff, _ctx(mock_session))

        assert issues == []

    async def test_promotions_split_by_another_manager_are_clean(self, cross_entity, mock_session):
        staff = _staff(
            _entry("hire", MANAGER_ID),
            _entry("promotion", MANAGER_ID),
            _entry("promotion", OTHER_MANAGER_ID),
            _entry("promotion", MANAGER_ID),
        )

        issues = await cross_entity._check_promotion_history(staff, _ctx(mock_session))

        assert issues == []

    async def test_consecutive_promotions_by_same_manager_warn(self, cross_entity, mock_session):
        staff = _staff(
            _entry("hire", MANAGER_ID),
            _entry("promotion", OTHER_MANAGER_ID),
            _entry("promotion", OTHER_MANAGER_ID),
        )

        issues = await cross_entity._check_promotion_history(staff, _ctx(mock_session))

        assert [issue.severity for issue in issues] == [IssueSeverity.WARNING]
        assert issues[0].message == "Duplicate promoter detected in promotion history"

    async def test_self_promotion_is_critical(self, cross_entity, mock_session):
        staff = _staff(_entry("hire", MANAGER_ID), _entry("promotion", STAFF_USER_ID))

        issues = await cross_entity._check_promotion_history(staff, _ctx(mock_session))

        assert [issue.severity for issue in issues] == [IssueSeverity.CRITICAL]


@pytest.mark.unit
class TestEntityResultCache:
    """Per-entity results are memoized with a TTL and a size bound."""

    @pytest.fixture
    def counting_rule(self, cross_entity):
        calls = []

        async def validate(entity, ctx):
            calls.append(entity.id)
            return [ValidationIssue(IssueSeverity.INFO, "widget", str(entity.id), "seen")]

        cross_entity._rules.clear()
        cross_entity.add_custom_rule(CrossEntityRule("count", "Counts evaluations", "widget", 10, validate))
        return calls

    async def test_repeat_within_ttl_is_cached(self, cross_entity, counting_rule, mock_session, clock):
        entity = SimpleNamespace(id=1)

        await cross_entity.validate_entity(entity, "widget", _ctx(mock_session))
        clock.advance(59)
        await cross_entity.validate_entity(entity, "widget", _ctx(mock_session))
        clock.advance(2)
        await cross_entity.validate_entity(entity, "widget", _ctx(mock_session))

        assert counting_rule == [1, 1]

    async def test_cache_is_bounded(self, cross_entity, counting_rule, mock_session):
        # Arrange: room for two entries
        for entity_id in (1, 2, 3):
            await cross_entity.validate_entity(SimpleNamespace(id=entity_id), "widget", _ctx(mock_session))

        # Act
        await cross_entity.validate_entity(SimpleNamespace(id=1), "widget", _ctx(mock_session))

        # Assert
        assert len(cross_entity._cache) == 2
        assert counting_rule == [1, 2, 3, 1]

    async def test_batch_reports_only_entities_with_findings(
        self, cross_entity, mock_session, patch_database
    ):
        async def flag_even(entity, ctx):
            if entity.id % 2:
                return []
            return [ValidationIssue(IssueSeverity.WARNING, "widget", str(entity.id), "even")]

        cross_entity._rules.clear()
        cross_entity.add_custom_rule(CrossEntityRule("even", "Flags even ids", "widget", 10, flag_even))

        results = await cross_entity.batch_validate(
            [("widget", SimpleNamespace(id=entity_id)) for entity_id in (1, 2, 3, 4)], GUILD_ID
        )

        assert sorted(results) == ["widget:2", "widget:4"]
