import logging
from typing import Iterable, Optional

from ..models.alerts import AlertPriority, AnyAlert, with_priority


class EscalationPolicy:
    """Raises severe alerts to Urgent before they are logged."""

    def __init__(self, keywords: Optional[Iterable[str]] = None):
        if keywords is None:
            keywords = ("critical", "urgent")
        self.keywords = tuple(keyword.lower() for keyword in keywords)
        self.logger = logging.getLogger(__name__)

    def needs_escalation(self, alert: AnyAlert) -> bool:
        if alert.priority == AlertPriority.URGENT:
            return False

        condition = alert.condition.lower()
        if any(keyword in condition for keyword in self.keywords):
            return True

        return alert.priority.rank >= AlertPriority.HIGH.rank

    def apply(self, alert: AnyAlert) -> AnyAlert:
        if not self.needs_escalation(alert):
            return alert

        self.logger.debug(f"Escalating alert for patient {alert.patient_id} to Urgent: {alert.condition}")
        return with_priority(alert, AlertPriority.URGENT)
