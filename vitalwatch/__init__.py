"""
VitalWatch: per-patient measurement store and alert evaluation engine.
"""

from .config import AlertEngineConfig, ConfigManager, DedupKeyMode
from .models import (
    MeasurementType, MeasurementRecord, PatientSnapshot,
    AlertPriority, AlertCategory, Alert, DecoratedAlert
)
from .services import RecordStore, PatientHistory, AlertGenerator

__version__ = "0.1.0"

__all__ = [
    'AlertEngineConfig',
    'ConfigManager',
    'DedupKeyMode',
    'MeasurementType',
    'MeasurementRecord',
    'PatientSnapshot',
    'AlertPriority',
    'AlertCategory',
    'Alert',
    'DecoratedAlert',
    'RecordStore',
    'PatientHistory',
    'AlertGenerator'
]
