"""
Alert Models for VitalWatch

This module defines the alert value types produced by the alert strategies,
the non-mutating priority/repeat overlay applied by the alert generator,
and the exceptions raised by the alert engine.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Union


class AlertPriority(Enum):
    """Alert priority, ordered Normal < High < Urgent."""
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other: 'AlertPriority') -> bool:
        if not isinstance(other, AlertPriority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: 'AlertPriority') -> bool:
        if not isinstance(other, AlertPriority):
            return NotImplemented
        return self.rank <= other.rank


_PRIORITY_RANK = {
    AlertPriority.NORMAL: 0,
    AlertPriority.HIGH: 1,
    AlertPriority.URGENT: 2
}


class AlertCategory(Enum):
    """Signal family that produced the alert."""
    BLOOD_PRESSURE = "BloodPressure"
    BLOOD_OXYGEN = "BloodOxygen"
    ECG = "ECG"
    COMBINED = "Combined"


class _AlertView:
    """Rendering shared by base alerts and decorated alerts."""

    @property
    def details(self) -> str:
        details = (
            f"Patient ID: {self.patient_id}, Condition: {self.condition}, "
            f"Timestamp: {self.timestamp}, Priority: {self.priority.value}"
        )
        if self.repeated:
            details += " (Repeated)"
        return details

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for alert sinks."""
        return {
            "patient_id": self.patient_id,
            "condition": self.condition,
            "timestamp": self.timestamp,
            "category": self.category.value,
            "rule_id": self.rule_id,
            "priority": self.priority.value,
            "repeated": self.repeated,
            "details": self.details
        }


@dataclass(frozen=True)
class Alert(_AlertView):
    """Alert as emitted by a strategy. Always Normal priority and not repeated."""
    patient_id: str
    condition: str
    timestamp: int
    category: AlertCategory
    rule_id: str

    @property
    def priority(self) -> AlertPriority:
        return AlertPriority.NORMAL

    @property
    def repeated(self) -> bool:
        return False

    @property
    def base(self) -> 'Alert':
        return self


@dataclass(frozen=True)
class DecoratedAlert(_AlertView):
    """
    Overlay over a base alert.

    Every field is delegated to ``base`` except priority and repeated status,
    which report the override when one is set.
    """
    base: Alert
    priority_override: Optional[AlertPriority] = None
    repeated_override: Optional[bool] = None

    @property
    def patient_id(self) -> str:
        return self.base.patient_id

    @property
    def condition(self) -> str:
        return self.base.condition

    @property
    def timestamp(self) -> int:
        return self.base.timestamp

    @property
    def category(self) -> AlertCategory:
        return self.base.category

    @property
    def rule_id(self) -> str:
        return self.base.rule_id

    @property
    def priority(self) -> AlertPriority:
        if self.priority_override is not None:
            return self.priority_override
        return self.base.priority

    @property
    def repeated(self) -> bool:
        if self.repeated_override is not None:
            return self.repeated_override
        return self.base.repeated


AnyAlert = Union[Alert, DecoratedAlert]


def with_priority(alert: AnyAlert, priority: AlertPriority) -> DecoratedAlert:
    """Return an overlay reporting ``priority``. The given alert is left untouched."""
    if isinstance(alert, DecoratedAlert):
        return replace(alert, priority_override=priority)
    return DecoratedAlert(base=alert, priority_override=priority)


def mark_repeated(alert: AnyAlert) -> DecoratedAlert:
    """Return an overlay reporting the alert as a repeat occurrence."""
    if isinstance(alert, DecoratedAlert):
        return replace(alert, repeated_override=True)
    return DecoratedAlert(base=alert, repeated_override=True)


class AlertEngineError(Exception):
    """Base exception for the alert engine."""
    pass


class AlertGenerationError(AlertEngineError):
    """Exception raised when a strategy fails while evaluating a patient."""
    pass


class ConfigurationError(AlertEngineError, ValueError):
    """Exception raised for invalid engine configuration."""
    pass
