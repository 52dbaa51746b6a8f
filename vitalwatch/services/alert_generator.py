"""
Alert Generation Engine for VitalWatch

This module implements the orchestrator that runs every registered strategy
against a patient's history and passes each candidate alert through the
suppression and escalation gate before it reaches the triggered-alert log.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, List, Optional, Tuple

from ..config import AlertEngineConfig
from ..models.alerts import AlertGenerationError, AnyAlert, mark_repeated
from ..models.measurement import PatientSnapshot
from ..services.alert_strategies import AlertStrategy, default_strategies
from ..services.alert_suppression import SuppressionEngine
from ..services.escalation import EscalationPolicy
from ..services.metrics import AlertEngineMetrics
from ..services.record_store import PatientHistory, RecordStore


def current_time_millis() -> int:
    return int(time.time() * 1000)


class AlertGenerator:
    """
    High-level alert generation service.

    Responsibilities:
    - Run the registered strategies, in order, over one snapshot per patient
    - Drop repeats inside the suppression window and mark later repeats
    - Escalate severe alerts to Urgent
    - Keep the log of triggered alerts
    """

    def __init__(
        self,
        config: Optional[AlertEngineConfig] = None,
        strategies: Optional[Iterable[AlertStrategy]] = None,
        suppression_engine: Optional[SuppressionEngine] = None,
        escalation_policy: Optional[EscalationPolicy] = None,
        metrics: Optional[AlertEngineMetrics] = None,
        clock: Callable[[], int] = current_time_millis
    ):
        self.config = config or AlertEngineConfig()
        self._strategies: List[AlertStrategy] = list(
            strategies if strategies is not None else default_strategies(self.config)
        )
        self.suppression_engine = suppression_engine or SuppressionEngine(self.config)
        self.escalation_policy = escalation_policy or EscalationPolicy(self.config.escalation_keywords)
        self.metrics = metrics if metrics is not None else (
            AlertEngineMetrics() if self.config.metrics_enabled else None
        )
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self._triggered_alerts: List[AnyAlert] = []
        self._trigger_lock = asyncio.Lock()

    @property
    def strategies(self) -> Tuple[AlertStrategy, ...]:
        return tuple(self._strategies)

    def register_strategy(self, strategy: AlertStrategy):
        """Add a strategy; it runs after the ones already registered."""
        self._strategies.append(strategy)
        self.logger.info(f"Registered alert strategy {strategy.name}")

    async def evaluate(self, patient: Optional[PatientHistory]) -> List[AnyAlert]:
        """
        Evaluate one patient's history against every registered strategy.

        Args:
            patient: Patient history entry, may be None

        Returns:
            Alerts added to the triggered-alert log by this evaluation
        """
        if patient is None:
            self.logger.warning("Cannot evaluate data for a missing patient")
            return []

        start = time.perf_counter()
        snapshot = await patient.snapshot()
        now_ms = self.clock()

        logged: List[AnyAlert] = []
        for strategy in self._strategies:
            try:
                candidates = self._run_strategy(strategy, snapshot, now_ms)
            except AlertGenerationError as e:
                self.logger.error(str(e))
                if self.metrics:
                    self.metrics.strategy_failed(strategy.name)
                continue

            for candidate in candidates:
                result = await self.trigger(candidate)
                if result is not None:
                    logged.append(result)

        if self.metrics:
            self.metrics.observe_evaluation(time.perf_counter() - start)

        return logged

    def _run_strategy(self, strategy: AlertStrategy, snapshot: PatientSnapshot, now_ms: int) -> List[AnyAlert]:
        try:
            return strategy.evaluate(snapshot, now_ms)
        except Exception as e:
            raise AlertGenerationError(
                f"Strategy {strategy.name} failed for patient {snapshot.patient_id}: {str(e)}"
            ) from e

    async def evaluate_all(self, store: RecordStore) -> List[AnyAlert]:
        """Evaluate every patient known to the store concurrently."""
        results = await asyncio.gather(*(self.evaluate(patient) for patient in store.patients()))
        return [alert for patient_alerts in results for alert in patient_alerts]

    async def trigger(self, alert: AnyAlert) -> Optional[AnyAlert]:
        """
        Pass an alert through suppression and escalation into the log.

        Returns:
            The alert as logged (possibly decorated), or None if suppressed
        """
        async with self._trigger_lock:
            decision = self.suppression_engine.decide(alert, self.clock())

            if decision.suppressed:
                if self.metrics:
                    self.metrics.alert_suppressed(alert.category.value)
                return None

            if decision.repeated:
                alert = mark_repeated(alert)

            alert = self.escalation_policy.apply(alert)
            self._triggered_alerts.append(alert)

            if self.metrics:
                self.metrics.alert_triggered(alert.category.value, alert.priority.value)
                self.metrics.set_suppression_entries(len(self.suppression_engine))

        self.logger.info(
            f"ALERT TRIGGERED: Patient ID {alert.patient_id}, Condition: {alert.condition}, "
            f"Timestamp: {alert.timestamp}, Priority: {alert.priority.value}"
        )
        return alert

    def get_alerts(self) -> List[AnyAlert]:
        """Copy of the triggered-alert log."""
        return list(self._triggered_alerts)

    async def clear_alerts(self):
        """Empty the log and forget every suppression entry."""
        async with self._trigger_lock:
            self._triggered_alerts.clear()
            self.suppression_engine.reset()

            if self.metrics:
                self.metrics.set_suppression_entries(0)

        self.logger.info("Cleared triggered alerts and suppression state")
