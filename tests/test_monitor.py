"""
Tests for the assumption decay monitor.
"""

from datetime import datetime, timedelta, timezone

import pytest

from intent_ledger.records.monitor import AssumptionMonitor, parse_expiry_hint
from intent_ledger.records.primitives import utc_now
from intent_ledger.records.schemas import AssumptionCreate, IntentCreate
from intent_ledger.records.services import AssumptionService, IntentService

from .conftest import TENANT, USER


@pytest.fixture
def intent(db_session):
    return IntentService(db_session).create(TENANT, USER, IntentCreate(title="Launch EU"))


@pytest.fixture
def add(db_session, intent):
    service = AssumptionService(db_session)

    def _add(statement, confidence=None, expiry_hint=None, intent_id=None):
        return service.create(
            USER,
            AssumptionCreate(
                intent_id=intent_id or intent.id,
                assumption_statement=statement,
                confidence_level=confidence,
                expiry_hint=expiry_hint,
            ),
        )

    return _add


@pytest.fixture
def monitor(db_session):
    return AssumptionMonitor(db_session)


def _reasons(result):
    return {alert.assumption_statement: alert.reason for alert in result.alerts}


class TestParseExpiryHint:
    def test_date(self):
        assert parse_expiry_hint("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_zulu_datetime(self):
        assert parse_expiry_hint("2026-03-01T12:00:00Z") == datetime(
            2026, 3, 1, 12, tzinfo=timezone.utc
        )

    def test_offset_kept(self):
        parsed = parse_expiry_hint("2026-03-01T12:00:00+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)

    @pytest.mark.parametrize("hint", [None, "", "next quarter", "2026-13-45"])
    def test_unparsable(self, hint):
        assert parse_expiry_hint(hint) is None


class TestCheckForDecay:
    def test_healthy(self, monitor, add):
        add("Fresh and confident", confidence=0.9)
        result = monitor.check_for_decay()

        assert result.total_checked == 1
        assert result.alerts == []
        assert result.healthy_count == 1

    def test_expired(self, monitor, add, intent):
        add("Regulation unchanged", confidence=0.9, expiry_hint="2020-01-01")
        result = monitor.check_for_decay()

        alert = result.alerts[0]
        assert alert.reason == "expired"
        assert alert.intent_id == intent.id
        assert alert.intent_title == "Launch EU"
        assert "expiry" in alert.suggested_action

    def test_expired_wins_over_low_confidence(self, monitor, add):
        add("Both", confidence=0.1, expiry_hint="2020-01-01")
        assert _reasons(monitor.check_for_decay()) == {"Both": "expired"}

    def test_low_confidence(self, monitor, add):
        add("Shaky", confidence=0.2)
        assert _reasons(monitor.check_for_decay()) == {"Shaky": "low_confidence"}

    def test_zero_confidence_is_low(self, monitor, add):
        add("Nothing to go on", confidence=0.0)
        assert _reasons(monitor.check_for_decay()) == {"Nothing to go on": "low_confidence"}

    def test_threshold_is_exclusive(self, monitor, add):
        add("Borderline", confidence=0.3)
        assert monitor.check_for_decay().alerts == []

    def test_unknown_confidence_is_not_low(self, monitor, add):
        add("Unrated")
        assert monitor.check_for_decay().alerts == []

    def test_stale(self, monitor, add):
        add("Old belief", confidence=0.9)
        later = utc_now() + timedelta(days=45)

        result = monitor.check_for_decay(now=later)

        alert = result.alerts[0]
        assert alert.reason == "stale"
        assert alert.days_since_created == 45
        assert "days old" in alert.suggested_action

    def test_not_stale_at_threshold(self, monitor, add):
        add("Month old", confidence=0.9)
        later = utc_now() + timedelta(days=30)
        assert monitor.check_for_decay(now=later).alerts == []

    def test_future_hint_suppresses_stale(self, monitor, add):
        add("Checked yearly", confidence=0.9, expiry_hint="2999-01-01")
        later = utc_now() + timedelta(days=90)
        assert monitor.check_for_decay(now=later).alerts == []

    def test_unparsable_hint_is_neither_expired_nor_stale(self, monitor, add):
        add("Vague", confidence=0.9, expiry_hint="after launch")
        later = utc_now() + timedelta(days=90)
        assert monitor.check_for_decay(now=later).alerts == []

    def test_invalidated_not_checked(self, db_session, monitor, add):
        assumption = add("Dropped", confidence=0.1)
        AssumptionService(db_session).invalidate(assumption.id, USER)

        result = monitor.check_for_decay()
        assert result.total_checked == 0

    def test_custom_thresholds(self, db_session, add):
        add("Fairly sure", confidence=0.5)
        strict = AssumptionMonitor(db_session, stale_days=1, low_confidence=0.6)
        assert _reasons(strict.check_for_decay()) == {"Fairly sure": "low_confidence"}

    def test_scoped_to_intent(self, db_session, monitor, add):
        other = IntentService(db_session).create(TENANT, USER, IntentCreate(title="Other"))
        add("Mine", confidence=0.1)
        add("Theirs", confidence=0.1, intent_id=other.id)

        result = monitor.check_for_decay(intent_id=other.id)
        assert _reasons(result) == {"Theirs": "low_confidence"}

    def test_scoped_to_tenant(self, db_session, monitor, add):
        foreign = IntentService(db_session).create("tenant-2", USER, IntentCreate(title="X"))
        add("Mine", confidence=0.1)
        add("Foreign", confidence=0.1, intent_id=foreign.id)

        result = monitor.check_for_decay(tenant_id=TENANT)
        assert _reasons(result) == {"Mine": "low_confidence"}

    def test_missing_intent_title(self, monitor, add):
        add("Orphan", confidence=0.1, intent_id="deleted-intent")
        alert = monitor.check_for_decay().alerts[0]
        assert alert.intent_title == "Unknown Intent"

    def test_to_dict(self, monitor, add):
        add("Shaky", confidence=0.2)
        data = monitor.check_for_decay().to_dict()

        assert data["total_checked"] == 1
        assert data["healthy_count"] == 0
        assert data["alerts"][0]["reason"] == "low_confidence"
