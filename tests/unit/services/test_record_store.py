"""
Unit tests for the record store and patient directory.

Covers lazy patient creation, inclusive range queries, ordering regardless of
insertion order, snapshot independence and concurrent producers.
"""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from vitalwatch.models.measurement import MeasurementRecord, MeasurementType
from vitalwatch.services.record_store import PatientHistory, RecordStore


class TestRecordStoreAppend:

    @pytest.mark.asyncio
    async def test_append_creates_patient_lazily(self, store):
        assert store.all_patients() == []

        record = await store.append(1, 120.0, "SystolicPressure", 1700000000000)

        assert store.all_patients() == [1]
        assert 1 in store
        assert record == MeasurementRecord(1, "SystolicPressure", 120.0, 1700000000000)
        assert await store.query(1, 0, 2**63 - 1) == (record,)

    @pytest.mark.asyncio
    async def test_append_accepts_measurement_type(self, store):
        await store.append(3, 97, MeasurementType.SATURATION, 1000)

        records = await store.query(3, 0, 2000)

        assert records[0].record_type == "Saturation"

    @pytest.mark.asyncio
    async def test_no_value_validation(self, store):
        await store.append(1, -500.0, "SystolicPressure", 1000)
        await store.append(1, 10000.0, "Saturation", 1000)

        assert len(await store.query(1, 0, 1000)) == 2

    @pytest.mark.asyncio
    async def test_all_patients_sorted(self, store):
        for patient_id in (5, 2, 9):
            await store.append(patient_id, 1.0, "ECG", 1000)

        assert store.all_patients() == [2, 5, 9]
        assert [p.patient_id for p in store.patients()] == [2, 5, 9]
        assert len(store) == 3
        assert store.record_count == 3

    @pytest.mark.asyncio
    async def test_append_counts_metrics(self, store, metrics):
        await store.append(1, 120.0, "SystolicPressure", 1000)
        await store.append(1, 121.0, "SystolicPressure", 2000)
        await store.append(1, 98.0, "Saturation", 2000)

        assert metrics.get_sample(
            "vitalwatch_records_ingested_total", {"record_type": "SystolicPressure"}
        ) == 2.0
        assert metrics.get_sample(
            "vitalwatch_records_ingested_total", {"record_type": "Saturation"}
        ) == 1.0


class TestRecordStoreQuery:

    @pytest.mark.asyncio
    async def test_query_filters_inclusive_range(self, store):
        await store.append(1, 100.0, "HeartRate", 1000)
        await store.append(1, 101.0, "HeartRate", 1500)
        await store.append(1, 102.0, "HeartRate", 2000)
        await store.append(1, 103.0, "HeartRate", 2500)
        await store.append(1, 99.0, "HeartRate", 500)
        await store.append(1, 104.0, "HeartRate", 3000)

        records = await store.query(1, 1500, 2000)

        assert [(r.value, r.timestamp) for r in records] == [(101.0, 1500), (102.0, 2000)]

    @pytest.mark.asyncio
    async def test_query_exact_timestamp(self, store):
        await store.append(1, 100.0, "HeartRate", 1000)

        records = await store.query(1, 1000, 1000)

        assert len(records) == 1
        assert records[0].value == 100.0

    @pytest.mark.asyncio
    async def test_query_orders_out_of_order_inserts(self, store):
        for timestamp in (3000, 1000, 2000, 1000):
            await store.append(1, float(timestamp), "ECG", timestamp)

        records = await store.query(1, 0, 5000)

        assert [r.timestamp for r in records] == [1000, 1000, 2000, 3000]

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_insertion_order(self, store):
        await store.append(1, 1.0, "ECG", 1000)
        await store.append(1, 2.0, "ECG", 1000)
        await store.append(1, 3.0, "ECG", 1000)

        records = await store.query(1, 1000, 1000)

        assert [r.value for r in records] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_query_unknown_patient(self, store):
        assert await store.query(42, 0, 10**13) == ()

    @pytest.mark.asyncio
    async def test_query_empty_range(self, store):
        await store.append(1, 100.0, "HeartRate", 1000)

        assert await store.query(1, 1200, 1800) == ()
        assert await store.query(1, 2000, 500) == ()

    @pytest.mark.asyncio
    async def test_query_isolated_per_patient(self, store):
        await store.append(1, 100.0, "HeartRate", 1000)
        await store.append(2, 200.0, "HeartRate", 1000)

        records = await store.query(1, 0, 5000)

        assert [r.patient_id for r in records] == [1]

    @pytest.mark.asyncio
    async def test_query_result_is_snapshot(self, store):
        await store.append(1, 100.0, "HeartRate", 1000)
        records = await store.query(1, 0, 5000)

        await store.append(1, 101.0, "HeartRate", 1500)

        assert isinstance(records, tuple)
        assert len(records) == 1
        assert len(await store.query(1, 0, 5000)) == 2

    @settings(max_examples=200, deadline=None)
    @given(
        timestamps=st.lists(st.integers(min_value=0, max_value=10_000), max_size=40),
        bounds=st.tuples(st.integers(min_value=0, max_value=10_000), st.integers(min_value=0, max_value=10_000))
    )
    def test_query_returns_exactly_records_in_range(self, timestamps, bounds):
        start, end = bounds

        async def scenario():
            store = RecordStore()
            for index, timestamp in enumerate(timestamps):
                await store.append(1, float(index), "ECG", timestamp)
            return await store.query(1, start, end)

        records = asyncio.run(scenario())

        expected = sorted(t for t in timestamps if start <= t <= end)
        assert [r.timestamp for r in records] == expected


class TestPatientHistory:

    @pytest.mark.asyncio
    async def test_snapshot_is_independent(self):
        history = PatientHistory(4)
        await history.add_record(95.0, "Saturation", 2000)
        await history.add_record(96.0, "Saturation", 1000)

        snapshot = await history.snapshot()
        await history.add_record(97.0, "Saturation", 3000)

        assert snapshot.patient_id == 4
        assert [r.timestamp for r in snapshot.records] == [1000, 2000]
        assert len(history) == 3


class TestConcurrentProducers:

    @pytest.mark.asyncio
    async def test_concurrent_appends_keep_every_record(self, store):
        async def producer(patient_id: int, record_type: str):
            for i in range(50):
                await store.append(patient_id, float(i), record_type, 1000 + i)
                await asyncio.sleep(0)

        await asyncio.gather(*(
            producer(patient_id, record_type)
            for patient_id in range(1, 6)
            for record_type in ("SystolicPressure", "DiastolicPressure", "Saturation", "ECG")
        ))

        assert store.all_patients() == [1, 2, 3, 4, 5]
        for patient_id in range(1, 6):
            records = await store.query(patient_id, 0, 10_000)
            assert len(records) == 200
            timestamps = [r.timestamp for r in records]
            assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_concurrent_first_writes_create_one_entry(self, store):
        await asyncio.gather(*(store.append(8, float(i), "ECG", i) for i in range(20)))

        assert store.all_patients() == [8]
        assert len(await store.query(8, 0, 100)) == 20


class TestIngestion:

    @pytest.mark.asyncio
    async def test_ingest_batch(self, store):
        records = [
            MeasurementRecord(1, "Saturation", 97, 1000),
            MeasurementRecord(2, "Saturation", 94, 1000),
            MeasurementRecord(1, "Saturation", 96, 2000),
        ]

        count = await store.ingest(records)

        assert count == 3
        assert store.all_patients() == [1, 2]
        assert len(await store.query(1, 0, 5000)) == 2

    @pytest.mark.asyncio
    async def test_load_from_source(self, store):
        class ListSource:
            def __init__(self, records):
                self.records = records

            async def read_into(self, target):
                await target.ingest(self.records)

        await store.load_from(ListSource([MeasurementRecord(3, "ECG", 0.2, 1000)]))

        assert store.all_patients() == [3]
