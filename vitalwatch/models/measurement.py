"""
Measurement Models for VitalWatch

Time-stamped physiological measurements and the immutable per-patient snapshot
that alert strategies evaluate.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class MeasurementType(str, Enum):
    """Measurement tags consumed by the alert strategies."""
    SYSTOLIC_PRESSURE = "SystolicPressure"
    DIASTOLIC_PRESSURE = "DiastolicPressure"
    SATURATION = "Saturation"
    ECG = "ECG"


def _tag(record_type: Any) -> str:
    if isinstance(record_type, MeasurementType):
        return record_type.value
    return str(record_type)


@dataclass(frozen=True)
class MeasurementRecord:
    """Single measurement for one patient. Timestamps are epoch milliseconds."""
    patient_id: int
    record_type: str
    value: float
    timestamp: int

    def __post_init__(self):
        # frozen dataclass, normalise through object.__setattr__
        object.__setattr__(self, "record_type", _tag(self.record_type))
        object.__setattr__(self, "value", float(self.value))
        object.__setattr__(self, "timestamp", int(self.timestamp))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for producers and sinks."""
        return {
            "patient_id": self.patient_id,
            "record_type": self.record_type,
            "value": self.value,
            "timestamp": self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MeasurementRecord':
        missing = [key for key in ("patient_id", "record_type", "value", "timestamp") if key not in data]
        if missing:
            raise ValueError(f"Measurement record missing fields: {', '.join(missing)}")

        return cls(
            patient_id=int(data["patient_id"]),
            record_type=data["record_type"],
            value=data["value"],
            timestamp=data["timestamp"]
        )


@dataclass(frozen=True)
class PatientSnapshot:
    """
    Read-only view of a patient's history taken once per evaluation.

    Records are held in ascending timestamp order.
    """
    patient_id: int
    records: Tuple[MeasurementRecord, ...]

    def of_type(self, record_type: Any) -> List[MeasurementRecord]:
        """Records of one tag, ascending by timestamp."""
        tag = _tag(record_type)
        return sorted(
            (record for record in self.records if record.record_type == tag),
            key=lambda record: record.timestamp
        )

    def latest(self, record_type: Any) -> Optional[MeasurementRecord]:
        records = self.of_type(record_type)
        return records[-1] if records else None

    def closest(self, record_type: Any, timestamp: int) -> Optional[MeasurementRecord]:
        """Record of the given tag with the smallest time distance to ``timestamp``."""
        records = self.of_type(record_type)
        if not records:
            return None
        # min() keeps the first of equal distances, i.e. the earlier record
        return min(records, key=lambda record: abs(record.timestamp - timestamp))

    def __len__(self) -> int:
        return len(self.records)
