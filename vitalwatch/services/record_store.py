import asyncio
import bisect
import logging
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from ..models.measurement import MeasurementRecord, PatientSnapshot
from ..services.metrics import AlertEngineMetrics


class MeasurementSource(Protocol):
    """Producer that feeds measurements into a record store."""

    async def read_into(self, store: 'RecordStore') -> None:
        ...


class PatientHistory:
    """Append-only measurement history for one patient, kept in timestamp order."""

    def __init__(self, patient_id: int):
        self.patient_id = patient_id
        self._records: List[MeasurementRecord] = []
        self._lock = asyncio.Lock()

    async def add_record(self, value: float, record_type: str, timestamp: int) -> MeasurementRecord:
        record = MeasurementRecord(
            patient_id=self.patient_id,
            record_type=record_type,
            value=value,
            timestamp=timestamp
        )
        async with self._lock:
            # insort_right keeps insertion order among equal timestamps
            bisect.insort_right(self._records, record, key=lambda r: r.timestamp)
        return record

    async def get_records(self, start_time: int, end_time: int) -> Tuple[MeasurementRecord, ...]:
        """Records with ``start_time <= timestamp <= end_time`` in ascending order."""
        if start_time > end_time:
            return ()

        async with self._lock:
            low = bisect.bisect_left(self._records, start_time, key=lambda r: r.timestamp)
            high = bisect.bisect_right(self._records, end_time, key=lambda r: r.timestamp)
            return tuple(self._records[low:high])

    async def snapshot(self) -> PatientSnapshot:
        """Immutable view of the full history."""
        async with self._lock:
            records = tuple(self._records)
        return PatientSnapshot(patient_id=self.patient_id, records=records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"PatientHistory(patient_id={self.patient_id}, records={len(self._records)})"


class RecordStore:
    """
    In-memory store of per-patient measurement histories.

    Also acts as the patient directory: entries are created lazily on the first
    write for an unseen patient id and live for the lifetime of the store.
    """

    def __init__(self, metrics: Optional[AlertEngineMetrics] = None):
        self.metrics = metrics
        self.logger = logging.getLogger(__name__)
        self._patients: Dict[int, PatientHistory] = {}
        self._directory_lock = asyncio.Lock()

    async def append(self, patient_id: int, value: float, record_type: str, timestamp: int) -> MeasurementRecord:
        """Store one measurement, creating the patient entry if needed."""
        patient = await self._get_or_create(patient_id)
        record = await patient.add_record(value, record_type, timestamp)

        if self.metrics:
            self.metrics.record_ingested(record.record_type)

        return record

    async def ingest(self, records: Iterable[MeasurementRecord]) -> int:
        """Append a batch of records, returning how many were stored."""
        count = 0
        for record in records:
            await self.append(record.patient_id, record.value, record.record_type, record.timestamp)
            count += 1

        self.logger.debug(f"Ingested {count} measurement records")
        return count

    async def load_from(self, source: MeasurementSource) -> None:
        """Let an external producer populate the store."""
        await source.read_into(self)

    async def query(self, patient_id: int, start_time: int, end_time: int) -> Tuple[MeasurementRecord, ...]:
        """
        Query a patient's records within a time range.

        Args:
            patient_id: Patient identifier
            start_time: Inclusive range start, epoch milliseconds
            end_time: Inclusive range end, epoch milliseconds

        Returns:
            Tuple of records in non-decreasing timestamp order; empty for
            unknown patients or empty ranges
        """
        patient = self._patients.get(patient_id)
        if patient is None:
            return ()
        return await patient.get_records(start_time, end_time)

    def get_patient(self, patient_id: int) -> Optional[PatientHistory]:
        return self._patients.get(patient_id)

    def all_patients(self) -> List[int]:
        return sorted(self._patients)

    def patients(self) -> List[PatientHistory]:
        return [self._patients[patient_id] for patient_id in sorted(self._patients)]

    @property
    def record_count(self) -> int:
        return sum(len(patient) for patient in self._patients.values())

    def __len__(self) -> int:
        return len(self._patients)

    def __contains__(self, patient_id: int) -> bool:
        return patient_id in self._patients

    async def _get_or_create(self, patient_id: int) -> PatientHistory:
        patient = self._patients.get(patient_id)
        if patient is not None:
            return patient

        async with self._directory_lock:
            patient = self._patients.get(patient_id)
            if patient is None:
                patient = PatientHistory(patient_id)
                self._patients[patient_id] = patient
                self.logger.info(f"Created history for patient {patient_id}")
            return patient
