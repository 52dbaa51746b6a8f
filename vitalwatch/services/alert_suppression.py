"""
Alert Suppression Engine for VitalWatch

Time-based repeat suppression: an alert whose key was seen less than the
suppression window ago is dropped, and one whose key was seen before the
window is let through marked as a repeat.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Optional, Tuple

from ..config import AlertEngineConfig, DedupKeyMode
from ..models.alerts import AnyAlert


SuppressionKey = Tuple[Hashable, ...]


@dataclass
class SuppressionEntry:
    """Last time an alert with this key made it into the log."""
    key: SuppressionKey
    last_trigger_time: int

    def to_dict(self):
        return {
            "key": list(self.key),
            "last_trigger_time": self.last_trigger_time
        }


@dataclass(frozen=True)
class SuppressionDecision:
    """Decision made by suppression engine."""
    key: SuppressionKey
    suppressed: bool
    repeated: bool
    reason: str
    decision_time: int
    previous_trigger_time: Optional[int]

    def to_dict(self):
        return {
            "key": list(self.key),
            "suppressed": self.suppressed,
            "repeated": self.repeated,
            "reason": self.reason,
            "decision_time": self.decision_time,
            "previous_trigger_time": self.previous_trigger_time
        }


class SuppressionEngine:
    """
    Tracks one entry per distinct alert key.

    Not synchronized on its own; the alert generator calls ``decide`` inside
    its trigger critical section so check and update happen atomically.
    Entries are never expired, only dropped by ``reset``.
    """

    FIRST_OCCURRENCE = "FIRST_OCCURRENCE"
    WITHIN_SUPPRESSION_WINDOW = "WITHIN_SUPPRESSION_WINDOW"
    REPEAT_AFTER_WINDOW = "REPEAT_AFTER_WINDOW"

    def __init__(self, config: Optional[AlertEngineConfig] = None):
        self.config = config or AlertEngineConfig()
        self.logger = logging.getLogger(__name__)
        self._entries: Dict[SuppressionKey, SuppressionEntry] = {}

    @property
    def window_ms(self) -> int:
        return self.config.suppression_window_ms

    def key_for(self, alert: AnyAlert) -> SuppressionKey:
        """Suppression key of an alert according to the configured key mode."""
        if self.config.dedup_key_mode == DedupKeyMode.RULE:
            return (alert.patient_id, alert.rule_id)
        return (alert.patient_id, alert.condition)

    def decide(self, alert: AnyAlert, now_ms: int) -> SuppressionDecision:
        """
        Decide whether an alert is suppressed or repeated, and record it.

        Args:
            alert: Alert about to enter the triggered-alert log
            now_ms: Current time, epoch milliseconds

        Returns:
            SuppressionDecision; the entry is refreshed unless suppressed
        """
        key = self.key_for(alert)
        entry = self._entries.get(key)

        if entry is not None and now_ms - entry.last_trigger_time < self.window_ms:
            decision = SuppressionDecision(
                key=key,
                suppressed=True,
                repeated=False,
                reason=self.WITHIN_SUPPRESSION_WINDOW,
                decision_time=now_ms,
                previous_trigger_time=entry.last_trigger_time
            )
            self.logger.debug(f"Suppressed alert {key} (last triggered at {entry.last_trigger_time})")
            return decision

        if entry is not None:
            decision = SuppressionDecision(
                key=key,
                suppressed=False,
                repeated=True,
                reason=self.REPEAT_AFTER_WINDOW,
                decision_time=now_ms,
                previous_trigger_time=entry.last_trigger_time
            )
            entry.last_trigger_time = now_ms
        else:
            decision = SuppressionDecision(
                key=key,
                suppressed=False,
                repeated=False,
                reason=self.FIRST_OCCURRENCE,
                decision_time=now_ms,
                previous_trigger_time=None
            )
            self._entries[key] = SuppressionEntry(key=key, last_trigger_time=now_ms)

        self.logger.debug(f"Suppression decision for {key}: {decision.reason}")
        return decision

    def entry(self, key: SuppressionKey) -> Optional[SuppressionEntry]:
        return self._entries.get(key)

    def reset(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
