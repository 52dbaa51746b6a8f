from .metrics import AlertEngineMetrics
from .record_store import RecordStore, PatientHistory, MeasurementSource
from .alert_strategies import (
    AlertStrategy, StrategyKind, BloodPressureStrategy, OxygenSaturationStrategy,
    ECGStrategy, HypotensiveHypoxemiaStrategy, build_strategy, default_strategies
)
from .alert_suppression import SuppressionEngine, SuppressionDecision, SuppressionEntry
from .escalation import EscalationPolicy
from .alert_generator import AlertGenerator, current_time_millis

__all__ = [
    'AlertEngineMetrics',
    'RecordStore',
    'PatientHistory',
    'MeasurementSource',
    'AlertStrategy',
    'StrategyKind',
    'BloodPressureStrategy',
    'OxygenSaturationStrategy',
    'ECGStrategy',
    'HypotensiveHypoxemiaStrategy',
    'build_strategy',
    'default_strategies',
    'SuppressionEngine',
    'SuppressionDecision',
    'SuppressionEntry',
    'EscalationPolicy',
    'AlertGenerator',
    'current_time_millis'
]
