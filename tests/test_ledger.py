"""
Tests for the hash-chained execution ledger.

The ledger proves continuity, not correctness: every test here is
about whether a break is detected, never about what was analysed.
"""

import json

import pytest

from ddrp.errors import LedgerClosedError, LedgerIOError, LedgerLockedError
from ddrp.hashing import digest_of
from ddrp.ledger import (
    DISCLAIMER,
    GENESIS_HASH,
    LOCK_FILENAME,
    TRANSACTION_VERSION,
    LedgerHandle,
    compute_transaction_hash,
    create_record,
    verify_ledger,
    verify_records,
)
from ddrp.schemas.ledger import (
    TransactionEnvironment,
    TransactionInput,
    TransactionOutputs,
    TransactionRecord,
)


ENV = TransactionEnvironment(
    python_version="3.12.0", os="linux", ddrp_version="0.2.0",
)


def make_input(n=0):
    return TransactionInput(
        input_hash=f"{n:016x}", input_length=100 + n, input_format="text/plain",
    )


def make_outputs(n=0):
    return TransactionOutputs(
        detection_hash=f"d{n:015x}", obligations_hash=f"o{n:015x}",
    )


def build_chain(k):
    records, prev = [], GENESIS_HASH
    for i in range(k):
        rec = create_record(
            make_input(i), make_outputs(i), prev,
            environment=ENV,
            transaction_id=f"00000000-0000-4000-8000-{i:012d}",
            timestamp="2026-01-01T00:00:00+00:00",
        )
        records.append(rec)
        prev = rec.chain.transaction_hash
    return records


@pytest.fixture
def ledger(tmp_path):
    handle = LedgerHandle.open(tmp_path / "ledger", environment=ENV)
    yield handle
    handle.close()


def fill(ledger, k):
    return [ledger.append(make_input(i), make_outputs(i)) for i in range(k)]


def edit_record(path, mutate):
    data = json.loads(path.read_text(encoding="utf-8"))
    mutate(data)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class TestRecordConstruction:
    def test_genesis(self):
        assert GENESIS_HASH == "0000000000000000"
        assert build_chain(1)[0].chain.previous_transaction_hash == GENESIS_HASH

    def test_fields(self):
        rec = build_chain(1)[0]
        assert rec.transaction_version == TRANSACTION_VERSION
        assert rec.ddrp_version == "0.2.0"
        assert rec.timezone == "UTC"
        assert rec.disclaimer == DISCLAIMER
        assert len(rec.chain.transaction_hash) == 16

    def test_self_hash_is_deterministic(self):
        assert build_chain(3) == build_chain(3)

    def test_self_hash_covers_content(self):
        rec = build_chain(1)[0]
        assert rec.chain.transaction_hash == digest_of(rec.hashed_content())
        assert compute_transaction_hash(rec) == rec.chain.transaction_hash

    def test_hashed_content_order(self):
        assert list(build_chain(1)[0].hashed_content()) == [
            "ddrp_version", "transaction_version", "transaction_id",
            "timestamp_local", "timezone", "input", "outputs", "environment",
            "previous_transaction_hash", "disclaimer",
        ]

    def test_commit_omitted_when_unset(self):
        rec = build_chain(1)[0]
        assert "ddrp_commit" not in rec.hashed_content()["environment"]
        assert "ddrp_commit" not in rec.to_json()

    def test_links(self):
        records = build_chain(4)
        for prev, rec in zip(records, records[1:]):
            assert rec.chain.previous_transaction_hash == prev.chain.transaction_hash

    def test_fresh_ids(self):
        a = create_record(make_input(), make_outputs(), GENESIS_HASH, environment=ENV)
        b = create_record(make_input(), make_outputs(), GENESIS_HASH, environment=ENV)
        assert a.transaction_id != b.transaction_id

    def test_records_are_frozen(self):
        rec = build_chain(1)[0]
        with pytest.raises(Exception):
            rec.timezone = "CET"


class TestVerifyRecords:
    def test_valid_chain(self):
        report = verify_records(build_chain(5))
        assert report.valid is True
        assert report.errors == []
        assert report.count == 5

    def test_empty(self):
        report = verify_records([])
        assert report.valid is True
        assert report.count == 0

    def test_edited_field(self):
        records = build_chain(3)
        records[1] = records[1].model_copy(update={"timezone": "CET"})
        report = verify_records(records)
        assert report.valid is False
        assert report.errors == [
            f"record 2: Hash mismatch - computed "
            f"{compute_transaction_hash(records[1])}, "
            f"recorded {records[1].chain.transaction_hash}",
        ]

    def test_removed_record(self):
        records = build_chain(3)
        report = verify_records([records[0], records[2]])
        assert report.valid is False
        assert len(report.errors) == 1
        assert report.errors[0].startswith("record 2: Chain break")

    def test_reordered(self):
        records = build_chain(3)
        report = verify_records([records[0], records[2], records[1]])
        assert report.valid is False
        assert report.errors[0].startswith("record 2:")

    def test_all_errors_reported(self):
        records = build_chain(4)
        records[1] = records[1].model_copy(update={"timezone": "CET"})
        records[3] = records[3].model_copy(update={"timezone": "CET"})
        report = verify_records(records)
        labels = [e.split(":")[0] for e in report.errors]
        assert labels == ["record 2", "record 4"]


class TestLedgerStorage:
    def test_round_trip(self, ledger):
        written = fill(ledger, 4)
        assert ledger.records() == written
        report = ledger.verify()
        assert report.valid is True
        assert report.count == 4

    def test_file_naming(self, ledger):
        fill(ledger, 3)
        names = sorted(p.name for p in ledger.directory.glob("*_transaction.json"))
        assert names == [
            "0001_transaction.json", "0002_transaction.json", "0003_transaction.json",
        ]
        assert ledger.next_sequence() == 4

    def test_chain_links_on_disk(self, ledger):
        first, second = fill(ledger, 2)
        assert first.chain.previous_transaction_hash == GENESIS_HASH
        assert second.chain.previous_transaction_hash == first.chain.transaction_hash
        assert ledger.last_hash() == second.chain.transaction_hash

    def test_empty_ledger(self, ledger):
        assert ledger.last_hash() == GENESIS_HASH
        assert ledger.records() == []
        report = ledger.verify()
        assert report.valid is True
        assert report.count == 0

    def test_missing_directory(self, tmp_path):
        report = verify_ledger(tmp_path / "never-created")
        assert report.valid is True
        assert report.count == 0

    def test_stored_json_shape(self, ledger):
        fill(ledger, 1)
        data = json.loads((ledger.directory / "0001_transaction.json").read_text())
        assert list(data) == [
            "ddrp_version", "transaction_version", "transaction_id",
            "timestamp_local", "timezone", "input", "outputs", "environment",
            "chain", "disclaimer",
        ]
        assert list(data["chain"]) == ["previous_transaction_hash", "transaction_hash"]

    def test_unrelated_files_ignored(self, ledger):
        fill(ledger, 2)
        (ledger.directory / "notes.txt").write_text("hello")
        assert ledger.verify().count == 2


class TestTamperDetection:
    def test_edited_field_on_disk(self, ledger):
        fill(ledger, 3)
        edit_record(
            ledger.directory / "0002_transaction.json",
            lambda d: d["input"].update(input_length=999),
        )
        report = verify_ledger(ledger.directory)
        assert report.valid is False
        assert report.count == 3
        assert report.errors[0].startswith("0002_transaction.json: Hash mismatch")
        for error in report.errors:
            assert not error.startswith("0001")

    def test_edited_hash_breaks_next_link(self, ledger):
        fill(ledger, 3)
        edit_record(
            ledger.directory / "0002_transaction.json",
            lambda d: d["chain"].update(transaction_hash="f" * 16),
        )
        report = verify_ledger(ledger.directory)
        assert [e.split(":")[0] for e in report.errors] == [
            "0002_transaction.json", "0003_transaction.json",
        ]
        assert "Hash mismatch" in report.errors[0]
        assert "Chain break" in report.errors[1]

    def test_deleted_record(self, ledger):
        fill(ledger, 3)
        (ledger.directory / "0002_transaction.json").unlink()
        report = verify_ledger(ledger.directory)
        assert report.valid is False
        assert report.count == 2
        assert report.errors[0].startswith("0003_transaction.json: Chain break")

    def test_type_change_is_not_coerced(self, ledger):
        fill(ledger, 3)
        edit_record(
            ledger.directory / "0002_transaction.json",
            lambda d: d["input"].update(input_length=str(d["input"]["input_length"])),
        )
        report = verify_ledger(ledger.directory)
        assert report.valid is False
        assert report.errors[0].startswith("0002_transaction.json: Unreadable record")

    def test_injected_field(self, ledger):
        fill(ledger, 2)
        edit_record(
            ledger.directory / "0001_transaction.json",
            lambda d: d.update(verdict="compliant"),
        )
        report = verify_ledger(ledger.directory)
        assert report.valid is False
        assert report.errors[0].startswith("0001_transaction.json: Unreadable record")

    def test_garbage_file_continues_walk(self, ledger):
        fill(ledger, 3)
        (ledger.directory / "0001_transaction.json").write_text("{not json")
        report = verify_ledger(ledger.directory)
        assert report.count == 3
        assert report.errors[0].startswith("0001_transaction.json: Unreadable record")
        assert report.errors[1].startswith("0002_transaction.json: Chain break")

    def test_invalid_utf8_byte(self, ledger):
        fill(ledger, 3)
        path = ledger.directory / "0002_transaction.json"
        data = bytearray(path.read_bytes())
        data[10] = 0xFF
        path.write_bytes(bytes(data))
        report = verify_ledger(ledger.directory)
        assert report.valid is False
        assert report.count == 3
        assert report.errors[0] == "0002_transaction.json: Unreadable record - invalid UTF-8 at byte 10"
        assert report.errors[1].startswith("0003_transaction.json: Chain break")

    def test_unreadable_tail_blocks_append(self, ledger):
        fill(ledger, 1)
        (ledger.directory / "0001_transaction.json").write_text("{not json")
        with pytest.raises(LedgerIOError):
            ledger.append(make_input(), make_outputs())


class TestHandleLifecycle:
    def test_lock_is_exclusive(self, ledger):
        with pytest.raises(LedgerLockedError):
            LedgerHandle.open(ledger.directory)

    def test_lock_released_on_close(self, tmp_path):
        directory = tmp_path / "ledger"
        first = LedgerHandle.open(directory)
        assert (directory / LOCK_FILENAME).exists()
        first.close()
        assert not (directory / LOCK_FILENAME).exists()
        second = LedgerHandle.open(directory)
        assert second.is_open
        second.close()

    def test_closed_handle_rejects_append(self, tmp_path):
        handle = LedgerHandle.open(tmp_path / "ledger")
        handle.close()
        with pytest.raises(LedgerClosedError):
            handle.append(make_input(), make_outputs())

    def test_context_manager(self, tmp_path):
        with LedgerHandle(tmp_path / "ledger", environment=ENV) as handle:
            assert handle.is_open
            handle.append(make_input(), make_outputs())
        assert not handle.is_open
        assert verify_ledger(tmp_path / "ledger").count == 1

    def test_lock_file_is_not_a_record(self, ledger):
        fill(ledger, 1)
        assert ledger.next_sequence() == 2

    def test_reopen_continues_chain(self, tmp_path):
        directory = tmp_path / "ledger"
        with LedgerHandle.open(directory, environment=ENV) as handle:
            first = handle.append(make_input(1), make_outputs(1))
        with LedgerHandle.open(directory, environment=ENV) as handle:
            second = handle.append(make_input(2), make_outputs(2))
        assert second.chain.previous_transaction_hash == first.chain.transaction_hash
        assert verify_ledger(directory).valid is True

    def test_stored_records_parse_strictly(self, ledger):
        fill(ledger, 1)
        raw = (ledger.directory / "0001_transaction.json").read_text()
        assert isinstance(TransactionRecord.model_validate_json(raw), TransactionRecord)


class _FailingWrite:
    """File object whose write fails like a full disk."""

    def __init__(self, fh):
        self._fh = fh

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self._fh.close()

    def write(self, data):
        raise OSError(28, "No space left on device")


class TestFailedWrite:
    def test_failed_write_leaves_no_record(self, ledger, monkeypatch):
        fill(ledger, 1)
        real_open = open
        monkeypatch.setattr(
            "ddrp.ledger.open",
            lambda path, mode="r", **kw: _FailingWrite(real_open(path, mode, **kw)),
            raising=False,
        )
        with pytest.raises(LedgerIOError):
            ledger.append(make_input(1), make_outputs(1))
        assert not (ledger.directory / "0002_transaction.json").exists()

    def test_append_recovers_after_failed_write(self, ledger, monkeypatch):
        first = fill(ledger, 1)[0]
        real_open = open
        monkeypatch.setattr(
            "ddrp.ledger.open",
            lambda path, mode="r", **kw: _FailingWrite(real_open(path, mode, **kw)),
            raising=False,
        )
        with pytest.raises(LedgerIOError):
            ledger.append(make_input(1), make_outputs(1))
        monkeypatch.undo()

        second = ledger.append(make_input(2), make_outputs(2))
        assert second.chain.previous_transaction_hash == first.chain.transaction_hash
        assert ledger.next_sequence() == 3
        assert ledger.verify().valid is True

    def test_existing_file_is_never_removed(self, ledger, monkeypatch):
        fill(ledger, 1)
        monkeypatch.setattr(ledger, "next_sequence", lambda: 1)
        with pytest.raises(LedgerIOError):
            ledger.append(make_input(1), make_outputs(1))
        assert verify_ledger(ledger.directory).count == 1
        assert verify_ledger(ledger.directory).valid is True
