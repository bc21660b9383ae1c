"""Turn compliance status changes into user alerts, once per transition."""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from schengen_tracker.compliance.calculator import DEFAULT_THRESHOLDS, Thresholds
from schengen_tracker.models import Alert, AlertSettings, ComplianceStatus, ComplianceWindow

logger = logging.getLogger(__name__)

_SUBJECTS = {
    ComplianceStatus.CAUTION: "Schengen reminder: {days_used} of {max_days} days used",
    ComplianceStatus.WARNING: "Schengen warning: {days_remaining} days remaining",
    ComplianceStatus.DANGER: "Urgent: only {days_remaining} Schengen days left",
}

_MESSAGES = {
    ComplianceStatus.CAUTION: (
        "You have used {days_used} of your {max_days} allowed days in the current "
        "{window_days}-day window. This is a friendly reminder to help you plan your travel."
    ),
    ComplianceStatus.WARNING: (
        "You have used {days_used} of your {max_days} allowed days. Please plan any future "
        "Schengen travel carefully to avoid exceeding the limit."
    ),
    ComplianceStatus.DANGER: (
        "You have only {days_remaining} days remaining in your current {window_days}-day "
        "Schengen window. Any additional travel may result in overstaying your allowed time."
    ),
}


@dataclass(frozen=True)
class AlertDecision:
    alert: Optional[Alert]
    settings: AlertSettings  # persist this; it carries the new last_notified_status


def build_alert(
    user_id: str,
    window: ComplianceWindow,
    previous: ComplianceStatus,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Alert:
    values = dict(
        days_used=window.days_used,
        days_remaining=window.days_remaining,
        max_days=thresholds.max_days,
        window_days=thresholds.window_days,
    )
    return Alert(
        user_id=user_id,
        status=window.status,
        previous_status=previous,
        days_used=window.days_used,
        days_remaining=window.days_remaining,
        subject=_SUBJECTS[window.status].format(**values),
        message=_MESSAGES[window.status].format(**values),
    )


def evaluate(
    settings: AlertSettings,
    window: ComplianceWindow,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> AlertDecision:
    """Decide whether today's window deserves an alert.

    An alert goes out when the status rises above the last notified one.
    A drop (e.g. warning → safe) is recorded silently so that a later rise
    alerts again. Repeats at the same status never alert. `thresholds` should
    be the ones the window was computed with.
    """
    previous = settings.last_notified_status
    current = window.status

    if current == previous:
        return AlertDecision(None, settings)

    updated = replace(settings, last_notified_status=current)

    if current.level < previous.level:
        logger.debug("User %s status eased %s → %s", settings.user_id, previous.value, current.value)
        return AlertDecision(None, updated)

    if not settings.enabled:
        # Keep tracking so enabling alerts later does not replay old transitions
        return AlertDecision(None, updated)

    alert = build_alert(settings.user_id, window, previous, thresholds)
    logger.info("Alerting user %s: %s → %s (%d days used)",
                settings.user_id, previous.value, current.value, window.days_used)
    return AlertDecision(alert, updated)
