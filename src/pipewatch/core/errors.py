"""Error taxonomy for the ingestion and alerting core."""

from __future__ import annotations


class PipewatchError(Exception):
    """Base class for pipewatch errors."""


class PayloadValidationError(PipewatchError):
    """Inbound build payload is missing identifying fields or is malformed."""


class StoreUnavailableError(PipewatchError):
    """The backing store could not be reached; the caller should retry."""


class RuleEvaluationError(PipewatchError):
    """Evaluating a single alert rule failed."""

    def __init__(self, rule_id: str, rule_name: str, cause: BaseException) -> None:
        super().__init__(f"rule {rule_name!r} ({rule_id}) failed: {cause}")
        self.rule_id = rule_id
        self.rule_name = rule_name
        self.cause = cause


class NotificationDeliveryError(PipewatchError):
    """A notification channel rejected or failed to deliver an alert."""


class RuleNotFoundError(PipewatchError):
    """No alert rule exists with the requested id."""


class AlertNotFoundError(PipewatchError):
    """No alert exists with the requested id."""


class InvalidAlertTransitionError(PipewatchError):
    """Requested alert status change is not allowed from its current status."""
