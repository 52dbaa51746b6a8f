from .measurement import MeasurementType, MeasurementRecord, PatientSnapshot
from .alerts import (
    AlertPriority, AlertCategory, Alert, DecoratedAlert, AnyAlert, with_priority, mark_repeated,
    AlertEngineError, AlertGenerationError, ConfigurationError
)

__all__ = [
    'MeasurementType',
    'MeasurementRecord',
    'PatientSnapshot',
    'AlertPriority',
    'AlertCategory',
    'Alert',
    'DecoratedAlert',
    'AnyAlert',
    'with_priority',
    'mark_repeated',
    'AlertEngineError',
    'AlertGenerationError',
    'ConfigurationError'
]
