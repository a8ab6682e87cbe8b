import math
import threading
import pytest
from chbridge.config import AppConfig
from chbridge.domain.models import TransferSpec
from chbridge.etl.importer import ImportBatcher, ImportState
from chbridge.etl.pipeline import TransferPipeline
from chbridge.exceptions import DataSourceError, InsertError, PlanError


def _records(n):
    for i in range(n):
        yield {"id": str(i), "name": f"name{i}", "city": f"city{i}"}


def test_import_2500_rows_in_three_batches(store, write_csv):
    """2,500 rows with threshold 1000 -> inserts of 1000, 1000, 500."""
    path = write_csv(2500)
    pipeline = TransferPipeline(store, AppConfig(batch_size=1000))

    result = pipeline.import_file(path, TransferSpec(table="events", columns=["id", "name"]))

    assert store.batch_sizes == [1000, 1000, 500]
    assert result.succeeded is True
    assert result.rows_processed == 2500
    assert result.rows_committed == 2500
    assert result.first_error is None
    assert result.table == "default.events"
    assert all(table == "default.events" for table, _ in store.inserts)


@pytest.mark.parametrize("rows,threshold", [(1, 1000), (999, 1000), (1000, 1000), (1001, 1000), (7, 3), (9, 3), (0, 5)])
def test_insert_call_count_is_ceil(store, rows, threshold):
    result = ImportBatcher(store, batch_size=threshold).run(_records(rows), "t", ["id"])

    assert len(store.batch_sizes) == math.ceil(rows / threshold)
    if rows:
        expected_last = rows % threshold or threshold
        assert store.batch_sizes[-1] == expected_last
    assert result.rows_processed == rows


def test_second_batch_failure_is_exposed(make_store, write_csv):
    store = make_store(fail_batches={1})
    path = write_csv(2500)

    result = TransferPipeline(store, AppConfig(batch_size=1000)).import_file(
        path, TransferSpec(table="events", columns=["id", "name"])
    )

    assert result.succeeded is False
    assert isinstance(result.first_error, InsertError)
    assert result.first_error.batch_index == 1
    assert result.first_error.row_offset == 1000
    assert result.first_error.rows_committed == 1000
    # Every row was read, but only the first batch and the 500-row tail made it
    assert result.rows_processed == 2500
    assert result.rows_committed == 1500
    assert result.batches_failed == 1
    assert result.batches_flushed == 2
    assert "2500 rows read" in result.message
    assert "1500 rows committed" in result.message


def test_later_batches_still_flush_after_a_failure(make_store, write_csv):
    store = make_store(fail_batches={1})
    path = write_csv(3000)

    result = TransferPipeline(store, AppConfig(batch_size=1000)).import_file(
        path, TransferSpec(table="events", columns=["id", "name"])
    )

    assert store.batch_sizes == [1000, 1000, 1000]
    assert result.rows_processed == 3000
    assert result.rows_committed == 2000
    assert result.batches_flushed == 2
    assert result.first_error.batch_index == 1


def test_only_first_error_is_kept(make_store):
    store = make_store(fail_batches={0, 2})

    result = ImportBatcher(store, batch_size=2).run(_records(6), "t", ["id"])

    assert result.first_error.batch_index == 0
    assert result.batches_failed == 2
    assert result.rows_committed == 2


def test_flushes_never_overlap(make_store):
    store = make_store(insert_delay=0.01)

    result = ImportBatcher(store, batch_size=10).run(_records(95), "t", ["id"])

    assert result.succeeded
    assert store.max_in_flight == 1
    assert store.batch_sizes == [10] * 9 + [5]


def test_batches_arrive_in_file_order(make_store):
    store = make_store(insert_delay=0.005)

    ImportBatcher(store, batch_size=4).run(_records(10), "t", ["id"])

    ids = [row["id"] for _, batch in store.inserts for row in batch]
    assert ids == [str(i) for i in range(10)]


def test_handed_off_batch_is_not_reused(make_store):
    store = make_store(insert_delay=0.01)

    ImportBatcher(store, batch_size=3).run(_records(9), "t", ["id"])

    batches = [batch for _, batch in store.inserts]
    assert [len(b) for b in batches] == [3, 3, 3]
    assert len({id(b) for b in batches}) == 3


def test_rows_are_projected(store):
    ImportBatcher(store, batch_size=10).run(_records(2), "t", ["name", "missing"])

    _, batch = store.inserts[0]
    assert batch == [{"name": "name0"}, {"name": "name1"}]


def test_read_error_aborts_without_further_flushes(store):
    def broken():
        yield from _records(5)
        raise DataSourceError("malformed line 6")

    batcher = ImportBatcher(store, batch_size=2)
    result = batcher.run(broken(), "t", ["id"])

    assert batcher.state == ImportState.FAILED
    assert result.succeeded is False
    assert isinstance(result.first_error, DataSourceError)
    assert result.rows_processed == 5
    # Two full batches went out; the residual row is not flushed
    assert store.batch_sizes == [2, 2]
    assert result.rows_committed == 4


def test_malformed_file_fails_import(store, tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("id,name\n1,a\n2,b,c,d\n")

    result = TransferPipeline(store, AppConfig(batch_size=10)).import_file(
        path, TransferSpec(table="t", columns=["id"])
    )

    assert result.succeeded is False
    assert isinstance(result.first_error, DataSourceError)
    assert store.inserts == []


def test_cancellation_waits_for_in_flight_flush(make_store):
    store = make_store(insert_delay=0.02)
    cancel = threading.Event()

    def records():
        for i, record in enumerate(_records(100)):
            if i == 25:
                cancel.set()
            yield record

    result = ImportBatcher(store, batch_size=10, cancel_event=cancel).run(records(), "t", ["id"])

    assert result.cancelled is True
    assert result.succeeded is False
    assert result.rows_processed == 25
    # Two full batches were flushed and awaited, the residual is dropped
    assert store.batch_sizes == [10, 10]
    assert result.rows_committed == 20
    assert "cancelled" in result.message


def test_cancel_before_start_reads_nothing(store):
    cancel = threading.Event()
    cancel.set()

    result = ImportBatcher(store, batch_size=10, cancel_event=cancel).run(_records(5), "t", ["id"])

    assert result.cancelled is True
    assert result.rows_processed == 0
    assert store.inserts == []


def test_state_ends_done(store):
    batcher = ImportBatcher(store, batch_size=3)
    assert batcher.state == ImportState.IDLE

    batcher.run(_records(4), "t", ["id"])

    assert batcher.state == ImportState.DONE


def test_missing_upload_raises(store, tmp_path):
    pipeline = TransferPipeline(store, AppConfig())
    with pytest.raises(DataSourceError):
        pipeline.import_file(tmp_path / "nope.csv", TransferSpec(table="t", columns=["id"]))


def test_import_requires_columns(store, write_csv):
    pipeline = TransferPipeline(store, AppConfig())
    with pytest.raises(PlanError):
        pipeline.import_file(write_csv(1), TransferSpec(table="t", columns=[]))


def test_default_table_is_used(store, write_csv):
    result = TransferPipeline(store, AppConfig(default_table="fallback")).import_file(
        write_csv(3), TransferSpec(columns=["id"])
    )

    assert result.table == "default.fallback"
    assert store.inserts[0][0] == "default.fallback"


def test_custom_delimiter(store, write_csv):
    path = write_csv(3, delimiter=";")

    result = TransferPipeline(store, AppConfig()).import_file(
        path, TransferSpec(table="t", columns=["id", "city"]), delimiter=";"
    )

    assert result.rows_processed == 3
    assert store.inserts[0][1][2] == {"id": "2", "city": "city2"}


def test_invalid_batch_size(store):
    with pytest.raises(ValueError):
        ImportBatcher(store, batch_size=0)
