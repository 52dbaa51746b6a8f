"""
Alert Strategies for VitalWatch

One stateless rule evaluator per clinical signal family:
- Blood pressure trends and critical thresholds
- Oxygen saturation absolute low and rapid drop
- ECG relative peak and absolute bounds
- Combined hypotensive hypoxemia

Each strategy reads an immutable PatientSnapshot and returns the alerts it
raises. Pre-escalated priorities are expressed as DecoratedAlert overlays.
"""

import logging
from enum import Enum
from typing import List, Optional, Protocol, Sequence

import numpy as np

from ..config import AlertEngineConfig
from ..models.alerts import Alert, AlertCategory, AlertPriority, AnyAlert, with_priority
from ..models.measurement import MeasurementRecord, MeasurementType, PatientSnapshot


logger = logging.getLogger(__name__)


class StrategyKind(Enum):
    """The fixed set of signal families evaluated by the engine."""
    BLOOD_PRESSURE = "blood_pressure"
    OXYGEN_SATURATION = "oxygen_saturation"
    ECG = "ecg"
    HYPOTENSIVE_HYPOXEMIA = "hypotensive_hypoxemia"


class AlertStrategy(Protocol):
    """Contract shared by all strategies."""
    kind: StrategyKind

    @property
    def name(self) -> str:
        ...

    def evaluate(self, snapshot: PatientSnapshot, now_ms: int) -> List[AnyAlert]:
        ...


class _BaseStrategy:
    kind: StrategyKind
    category: AlertCategory

    def __init__(self, config: Optional[AlertEngineConfig] = None):
        self.config = config or AlertEngineConfig()

    @property
    def name(self) -> str:
        return self.kind.value

    def _alert(self, snapshot: PatientSnapshot, rule: str, condition: str, timestamp: int) -> Alert:
        return Alert(
            patient_id=str(snapshot.patient_id),
            condition=condition,
            timestamp=timestamp,
            category=self.category,
            rule_id=f"{self.kind.value}.{rule}"
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class BloodPressureStrategy(_BaseStrategy):
    """
    Blood pressure rules.

    Trend: the last three systolic (or diastolic) readings each move more
    than ``trend_delta`` in the same direction.
    Critical: the latest systolic, paired with the diastolic reading closest
    in time, lies outside the safe range. No pairing tolerance is applied.
    """
    kind = StrategyKind.BLOOD_PRESSURE
    category = AlertCategory.BLOOD_PRESSURE

    def evaluate(self, snapshot: PatientSnapshot, now_ms: int) -> List[AnyAlert]:
        alerts: List[AnyAlert] = []

        systolic = snapshot.of_type(MeasurementType.SYSTOLIC_PRESSURE)
        diastolic = snapshot.of_type(MeasurementType.DIASTOLIC_PRESSURE)

        for label, records in (("Systolic", systolic), ("Diastolic", diastolic)):
            trend = self.trend_direction([record.value for record in records])
            if trend:
                alerts.append(self._alert(
                    snapshot,
                    f"trend.{label.lower()}",
                    f"{label} BP {trend} trend",
                    now_ms
                ))

        if systolic and diastolic:
            latest_systolic = systolic[-1]
            paired_diastolic = snapshot.closest(MeasurementType.DIASTOLIC_PRESSURE, latest_systolic.timestamp)
            critical = self._check_critical(snapshot, latest_systolic, paired_diastolic)
            if critical is not None:
                alerts.append(critical)

        return alerts

    def trend_direction(self, values: Sequence[float]) -> Optional[str]:
        """'increasing', 'decreasing' or None for the last ``trend_window`` values."""
        window = self.config.trend_window
        if len(values) < window:
            return None

        recent = list(values[-window:])
        steps = [later - earlier for earlier, later in zip(recent, recent[1:])]
        delta = self.config.trend_delta

        if all(step > delta for step in steps):
            return "increasing"
        if all(-step > delta for step in steps):
            return "decreasing"
        return None

    def _check_critical(self, snapshot: PatientSnapshot, systolic_record: MeasurementRecord,
                        diastolic_record: MeasurementRecord) -> Optional[AnyAlert]:
        config = self.config
        systolic = systolic_record.value
        diastolic = diastolic_record.value

        too_high = systolic > config.bp_systolic_high or diastolic > config.bp_diastolic_high
        too_low = systolic < config.bp_systolic_low or diastolic < config.bp_diastolic_low
        if not (too_high or too_low):
            return None

        alert: AnyAlert = self._alert(
            snapshot,
            "critical",
            f"Critical BP: {systolic}/{diastolic} mmHg",
            max(systolic_record.timestamp, diastolic_record.timestamp)
        )
        if too_high:
            alert = with_priority(alert, AlertPriority.HIGH)
        return alert


class OxygenSaturationStrategy(_BaseStrategy):
    """Low SpO2 on the latest reading, and rapid drops within the look-back window."""
    kind = StrategyKind.OXYGEN_SATURATION
    category = AlertCategory.BLOOD_OXYGEN

    def evaluate(self, snapshot: PatientSnapshot, now_ms: int) -> List[AnyAlert]:
        saturation = snapshot.of_type(MeasurementType.SATURATION)
        if not saturation:
            return []

        alerts: List[AnyAlert] = []

        low = self._check_low(snapshot, saturation[-1])
        if low is not None:
            alerts.append(low)

        drop = self._check_rapid_drop(snapshot, saturation)
        if drop is not None:
            alerts.append(drop)

        return alerts

    def _check_low(self, snapshot: PatientSnapshot, latest: MeasurementRecord) -> Optional[AnyAlert]:
        if latest.value >= self.config.spo2_low:
            return None

        alert: AnyAlert = self._alert(snapshot, "low", f"Low SpO2: {latest.value}%", latest.timestamp)
        if latest.value < self.config.spo2_very_low:
            alert = with_priority(alert, AlertPriority.HIGH)
        return alert

    def _check_rapid_drop(self, snapshot: PatientSnapshot,
                          saturation: List[MeasurementRecord]) -> Optional[AnyAlert]:
        latest = saturation[-1]

        for candidate in reversed(saturation[:-1]):
            if latest.timestamp - candidate.timestamp > self.config.spo2_drop_window_ms:
                # time ordered, nothing earlier can be inside the window
                break
            if candidate.value - latest.value >= self.config.spo2_drop_threshold:
                alert = self._alert(
                    snapshot,
                    "rapid_drop",
                    f"Rapid SpO2 drop: {candidate.value}% to {latest.value}%",
                    latest.timestamp
                )
                return with_priority(alert, AlertPriority.HIGH)

        return None


class ECGStrategy(_BaseStrategy):
    """
    Statistical outlier detection on the latest ECG reading.

    Mean and population standard deviation are taken over the last
    ``ecg_window`` readings, latest included.
    """
    kind = StrategyKind.ECG
    category = AlertCategory.ECG

    def evaluate(self, snapshot: PatientSnapshot, now_ms: int) -> List[AnyAlert]:
        config = self.config
        ecg = snapshot.of_type(MeasurementType.ECG)
        if len(ecg) < config.ecg_window:
            return []

        window = np.array([record.value for record in ecg[-config.ecg_window:]], dtype=float)
        mean = float(np.mean(window))
        stddev = float(np.std(window))

        latest = ecg[-1]
        value = latest.value

        relative_peak = abs(value - mean) > config.ecg_sigma * stddev and stddev > config.ecg_min_stddev
        out_of_bounds = value > config.ecg_upper_bound or value < config.ecg_lower_bound

        if not (relative_peak or out_of_bounds):
            return []

        reason = "relative peak" if relative_peak else "absolute abnormal value"
        rule = "relative_peak" if relative_peak else "absolute_bounds"
        alert = self._alert(
            snapshot,
            rule,
            f"Abnormal ECG data ({reason}): {value:.2f} (Avg: {mean:.2f}, StdDev: {stddev:.2f})",
            latest.timestamp
        )
        logger.debug(f"ECG outlier for patient {snapshot.patient_id}: value={value}, mean={mean}, std={stddev}")
        return [with_priority(alert, AlertPriority.HIGH)]


class HypotensiveHypoxemiaStrategy(_BaseStrategy):
    """
    Low systolic pressure together with low saturation.

    Pairs the latest systolic reading with the closest saturation reading and
    only fires when the two lie within ``hypoxemia_pairing_ms`` of each other.
    """
    kind = StrategyKind.HYPOTENSIVE_HYPOXEMIA
    category = AlertCategory.COMBINED

    def evaluate(self, snapshot: PatientSnapshot, now_ms: int) -> List[AnyAlert]:
        config = self.config
        systolic = snapshot.latest(MeasurementType.SYSTOLIC_PRESSURE)
        if systolic is None:
            return []

        saturation = snapshot.closest(MeasurementType.SATURATION, systolic.timestamp)
        if saturation is None:
            return []

        if abs(systolic.timestamp - saturation.timestamp) > config.hypoxemia_pairing_ms:
            return []

        if systolic.value < config.hypoxemia_systolic and saturation.value < config.hypoxemia_spo2:
            alert = self._alert(
                snapshot,
                "combined",
                f"Hypotensive Hypoxemia: BP Systolic {systolic.value}, SpO2 {saturation.value}%",
                max(systolic.timestamp, saturation.timestamp)
            )
            return [with_priority(alert, AlertPriority.URGENT)]

        return []


STRATEGY_TYPES = {
    StrategyKind.BLOOD_PRESSURE: BloodPressureStrategy,
    StrategyKind.OXYGEN_SATURATION: OxygenSaturationStrategy,
    StrategyKind.ECG: ECGStrategy,
    StrategyKind.HYPOTENSIVE_HYPOXEMIA: HypotensiveHypoxemiaStrategy
}


def build_strategy(kind: StrategyKind, config: Optional[AlertEngineConfig] = None) -> AlertStrategy:
    return STRATEGY_TYPES[kind](config)


def default_strategies(config: Optional[AlertEngineConfig] = None) -> List[AlertStrategy]:
    """The four built-in strategies in evaluation order."""
    return [build_strategy(kind, config) for kind in StrategyKind]
