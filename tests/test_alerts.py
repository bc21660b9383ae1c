"""Tests for status-change alerts."""

from datetime import date

from schengen_tracker.compliance.alerts import evaluate
from schengen_tracker.compliance.calculator import Thresholds, compute_window
from schengen_tracker.models import AlertSettings, ComplianceStatus, ComplianceWindow, Trip


def window(days_used, status):
    return ComplianceWindow(
        reference_date=date(2024, 6, 1),
        window_start=date(2023, 12, 5),
        window_end=date(2024, 6, 1),
        days_used=days_used,
        days_remaining=90 - days_used,
        status=status,
    )


def test_escalation_alerts_once():
    settings = AlertSettings(user_id="alice")
    decision = evaluate(settings, window(62, ComplianceStatus.CAUTION))

    assert decision.alert is not None
    assert decision.alert.status == ComplianceStatus.CAUTION
    assert decision.alert.previous_status == ComplianceStatus.SAFE
    assert "62 of 90" in decision.alert.subject
    assert decision.settings.last_notified_status == ComplianceStatus.CAUTION

    repeat = evaluate(decision.settings, window(64, ComplianceStatus.CAUTION))
    assert repeat.alert is None


def test_skipping_levels_reports_the_new_one():
    settings = AlertSettings(user_id="alice", last_notified_status=ComplianceStatus.CAUTION)
    decision = evaluate(settings, window(86, ComplianceStatus.DANGER))
    assert decision.alert.status == ComplianceStatus.DANGER
    assert "4 Schengen days left" in decision.alert.subject
    assert "4 days remaining" in decision.alert.message


def test_easing_is_silent_but_remembered():
    settings = AlertSettings(user_id="alice", last_notified_status=ComplianceStatus.WARNING)
    eased = evaluate(settings, window(40, ComplianceStatus.SAFE))
    assert eased.alert is None
    assert eased.settings.last_notified_status == ComplianceStatus.SAFE

    again = evaluate(eased.settings, window(76, ComplianceStatus.WARNING))
    assert again.alert is not None
    assert again.alert.previous_status == ComplianceStatus.SAFE


def test_disabled_settings_never_alert():
    settings = AlertSettings(user_id="alice", enabled=False)
    decision = evaluate(settings, window(80, ComplianceStatus.WARNING))
    assert decision.alert is None
    assert decision.settings.last_notified_status == ComplianceStatus.WARNING


def test_input_settings_not_mutated():
    settings = AlertSettings(user_id="alice")
    evaluate(settings, window(62, ComplianceStatus.CAUTION))
    assert settings.last_notified_status == ComplianceStatus.SAFE


def test_custom_thresholds_reach_the_alert_text():
    thresholds = Thresholds(caution=20, warning=25, danger=28, max_days=30, window_days=60)
    trips = [Trip(country_code="FR", start_date=date(2024, 5, 1), end_date=date(2024, 5, 21))]
    current = compute_window(trips, date(2024, 6, 1), thresholds)
    assert current.status == ComplianceStatus.CAUTION

    decision = evaluate(AlertSettings(user_id="alice"), current, thresholds)

    assert "21 of 30" in decision.alert.subject
    assert "30 allowed days" in decision.alert.message
    assert "60-day window" in decision.alert.message
