"""
Ledger — Append-Only, Hash-Chained Transaction Records

Every analysis run can be recorded as a transaction whose hash covers
its own content plus the hash of the record before it. The first record
points at GENESIS_HASH. Editing any stored record after the fact breaks
its self hash, and removing or reordering records breaks the links;
verify() reports every such break it finds, never just the first.

Storage is one JSON file per record in a ledger directory, keyed by a
zero-padded sequence number: 0001_transaction.json, 0002_... Sequence
numbers come from the existing keys and files are created exclusively,
so a key is never written twice.

Appends are a read-then-write sequence. A LedgerHandle holds the
directory lock for its lifetime and serialises appends within the
process; one open handle per directory.

What this is NOT:
  - Not a compliance determination
  - Not a legal seal or trusted timestamp authority
  - Not a blockchain
"""

from __future__ import annotations

import logging
import os
import platform
import re
import sys
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from pydantic import ValidationError

from ddrp.config import settings
from ddrp.errors import LedgerClosedError, LedgerIOError, LedgerLockedError
from ddrp.hashing import digest_of
from ddrp.schemas.ledger import (
    TransactionChain,
    TransactionEnvironment,
    TransactionInput,
    TransactionOutputs,
    TransactionRecord,
    VerificationReport,
)

logger = logging.getLogger(__name__)

TRANSACTION_VERSION = "0.2.0"
GENESIS_HASH = "0" * 16
DISCLAIMER = (
    "This record documents execution continuity only. "
    "It does not assert compliance, correctness, or legal validity."
)

LOCK_FILENAME = ".ledger.lock"
RECORD_SUFFIX = "_transaction.json"
_RECORD_NAME = re.compile(r"^(\d+)_transaction\.json$")


# ============================================================
# RECORD CONSTRUCTION (pure)
# ============================================================

def current_environment(
    ddrp_version: Optional[str] = None,
    ddrp_commit: Optional[str] = None,
) -> TransactionEnvironment:
    commit = settings.DDRP_COMMIT if ddrp_commit is None else ddrp_commit
    return TransactionEnvironment(
        python_version=platform.python_version(),
        os=sys.platform,
        ddrp_version=ddrp_version or settings.DDRP_VERSION,
        ddrp_commit=commit or None,
    )


def compute_transaction_hash(record: TransactionRecord) -> str:
    """Recompute a record's self hash from its own fields."""
    return digest_of(record.hashed_content())


def create_record(
    input_descriptor: TransactionInput,
    output_hashes: TransactionOutputs,
    previous_hash: str,
    environment: Optional[TransactionEnvironment] = None,
    transaction_id: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> TransactionRecord:
    """
    Build a sealed record chained to previous_hash.

    Never fails on business conditions. transaction_id and timestamp
    default to a fresh UUID4 and the current UTC time.
    """
    env = environment or current_environment()
    unsealed = TransactionRecord(
        ddrp_version=env.ddrp_version,
        transaction_version=TRANSACTION_VERSION,
        transaction_id=transaction_id or str(uuid.uuid4()),
        timestamp_local=timestamp or datetime.now(timezone.utc).isoformat(),
        timezone="UTC",
        input=input_descriptor,
        outputs=output_hashes,
        environment=env,
        chain=TransactionChain(
            previous_transaction_hash=previous_hash,
            transaction_hash="",
        ),
        disclaimer=DISCLAIMER,
    )
    return unsealed.model_copy(update={
        "chain": TransactionChain(
            previous_transaction_hash=previous_hash,
            transaction_hash=compute_transaction_hash(unsealed),
        ),
    })


# ============================================================
# VERIFICATION (pure over a sequence)
# ============================================================

_Entry = tuple[str, Optional[TransactionRecord], Optional[str]]


def _walk(entries: Iterable[_Entry]) -> VerificationReport:
    errors: list[str] = []
    expected = GENESIS_HASH
    count = 0

    for label, record, load_error in entries:
        count += 1
        if record is None:
            errors.append(f"{label}: Unreadable record - {load_error}")
            continue

        stored_prev = record.chain.previous_transaction_hash
        if stored_prev != expected:
            errors.append(
                f"{label}: Chain break - expected previous {expected}, got {stored_prev}"
            )

        computed = compute_transaction_hash(record)
        if computed != record.chain.transaction_hash:
            errors.append(
                f"{label}: Hash mismatch - computed {computed}, "
                f"recorded {record.chain.transaction_hash}"
            )

        expected = record.chain.transaction_hash

    return VerificationReport(valid=not errors, errors=errors, count=count)


def verify_records(records: Iterable[TransactionRecord]) -> VerificationReport:
    """
    Verify an in-memory sequence, first record first.

    Records are labelled by 1-based position ("record 3").
    """
    return _walk(
        (f"record {i}", record, None)
        for i, record in enumerate(records, start=1)
    )


# ============================================================
# STORAGE
# ============================================================

def _record_files(directory: Path) -> list[tuple[int, Path]]:
    """(sequence, path) for every record file, in sequence order."""
    try:
        names = os.listdir(directory)
    except FileNotFoundError:
        return []
    except OSError as exc:
        raise LedgerIOError(f"cannot list ledger directory {directory}: {exc}") from exc

    found = []
    for name in names:
        m = _RECORD_NAME.match(name)
        if m:
            found.append((int(m.group(1)), directory / name))
    found.sort(key=lambda item: item[0])
    return found


def _read_entry(path: Path) -> _Entry:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise LedgerIOError(f"cannot read ledger record {path}: {exc}") from exc
    try:
        raw = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        return path.name, None, f"invalid UTF-8 at byte {exc.start}"
    try:
        return path.name, TransactionRecord.model_validate_json(raw), None
    except ValidationError as exc:
        return path.name, None, f"{exc.error_count()} schema error(s)"


def verify_ledger(directory: Union[str, Path]) -> VerificationReport:
    """
    Verify every record stored in directory.

    A missing directory is an empty, valid ledger. Unreadable storage
    raises LedgerIOError; integrity failures are only reported.
    """
    directory = Path(directory)
    entries = [_read_entry(path) for _, path in _record_files(directory)]
    report = _walk(entries)
    if report.valid:
        logger.info(
            "Ledger verified",
            extra={"ledger_dir": str(directory), "record_count": report.count},
        )
    else:
        logger.warning(
            "Ledger integrity failure",
            extra={
                "ledger_dir": str(directory),
                "record_count": report.count,
                "error_count": len(report.errors),
            },
        )
    return report


class LedgerHandle:
    """
    Exclusive, explicit access to one ledger directory.

        with LedgerHandle.open("transactions") as ledger:
            record = ledger.append(input_descriptor, output_hashes)

    The directory lock is a lock file created with O_EXCL; a second
    handle on the same directory fails with LedgerLockedError until the
    first is closed.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        environment: Optional[TransactionEnvironment] = None,
    ):
        self.directory = Path(directory)
        self.environment = environment
        self._lock = threading.Lock()
        self._lock_fd: Optional[int] = None

    @classmethod
    def open(
        cls,
        directory: Union[str, Path, None] = None,
        environment: Optional[TransactionEnvironment] = None,
    ) -> LedgerHandle:
        handle = cls(directory or settings.LEDGER_DIR, environment=environment)
        handle.acquire()
        return handle

    # --- lifecycle ---

    @property
    def is_open(self) -> bool:
        return self._lock_fd is not None

    @property
    def lock_path(self) -> Path:
        return self.directory / LOCK_FILENAME

    def acquire(self) -> None:
        if self.is_open:
            return
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LedgerIOError(f"cannot create ledger directory {self.directory}: {exc}") from exc
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise LedgerLockedError(f"ledger {self.directory} is locked by another handle") from exc
        except OSError as exc:
            raise LedgerIOError(f"cannot lock ledger {self.directory}: {exc}") from exc
        os.write(fd, str(os.getpid()).encode("ascii"))
        self._lock_fd = fd

    def close(self) -> None:
        if not self.is_open:
            return
        os.close(self._lock_fd)
        self._lock_fd = None
        try:
            os.unlink(self.lock_path)
        except FileNotFoundError:
            pass

    def __enter__(self) -> LedgerHandle:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- reads ---

    def records(self) -> list[TransactionRecord]:
        """Stored records in sequence order. Schema-invalid files are skipped."""
        loaded = []
        for _, path in _record_files(self.directory):
            _, record, _ = _read_entry(path)
            if record is not None:
                loaded.append(record)
        return loaded

    def next_sequence(self) -> int:
        files = _record_files(self.directory)
        return files[-1][0] + 1 if files else 1

    def last_hash(self) -> str:
        """Hash of the highest-sequence record, or GENESIS_HASH when empty."""
        files = _record_files(self.directory)
        if not files:
            return GENESIS_HASH
        label, record, load_error = _read_entry(files[-1][1])
        if record is None:
            raise LedgerIOError(f"last ledger record {label} is unreadable: {load_error}")
        return record.chain.transaction_hash

    def verify(self) -> VerificationReport:
        return verify_ledger(self.directory)

    # --- writes ---

    def append(
        self,
        input_descriptor: TransactionInput,
        output_hashes: TransactionOutputs,
    ) -> TransactionRecord:
        """Seal a new record onto the end of the chain and store it."""
        if not self.is_open:
            raise LedgerClosedError(f"ledger handle for {self.directory} is closed")

        with self._lock:
            sequence = self.next_sequence()
            record = create_record(
                input_descriptor,
                output_hashes,
                previous_hash=self.last_hash(),
                environment=self.environment,
            )
            path = self.directory / f"{sequence:04d}{RECORD_SUFFIX}"
            try:
                fh = open(path, "x", encoding="utf-8")
            except OSError as exc:
                raise LedgerIOError(f"cannot create ledger record {path}: {exc}") from exc
            try:
                with fh:
                    fh.write(record.to_json())
            except OSError as exc:
                # A partial record would block every later append.
                path.unlink(missing_ok=True)
                raise LedgerIOError(f"cannot write ledger record {path}: {exc}") from exc

        logger.info(
            "Transaction appended",
            extra={
                "ledger_dir": str(self.directory),
                "sequence": sequence,
                "transaction_hash": record.chain.transaction_hash,
            },
        )
        return record
