"""
Shared bulk-operation runner.

Every bulk entry point (invoice generation, enrollment creation, result entry,
attendance) hands its items to `process_batch` together with an atomicity
policy instead of looping on its own.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from ..exceptions import ConflictError, ServiceError, ServiceValidationError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10


class Atomicity(str, enum.Enum):
    # item failures become error entries, chunks commit independently
    PER_ITEM = "per-item"
    # first failure rolls back every item
    WHOLE_BATCH = "whole-batch"


@dataclass
class BatchResult:
    succeeded: List[Any] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def error_count(self) -> int:
        return len(self.errors)


def _chunks(items, size):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _error_entry(key_name, key_value, message, code):
    return {key_name: key_value, "error": message, "code": code}


def require_entry(entry):
    """Bulk entries are JSON objects; anything else fails as that one item."""
    if not isinstance(entry, dict):
        raise ServiceValidationError("Each entry must be an object")
    return entry


def entry_key(name):
    # malformed entries are reported with a null key
    return lambda entry: entry.get(name) if isinstance(entry, dict) else None


def process_batch(
    items: Iterable[Any],
    operation: Callable[[Any], Any],
    key: Callable[[Any], Any],
    key_name: str,
    atomicity: Atomicity = Atomicity.PER_ITEM,
    chunk_size: Optional[int] = None,
) -> BatchResult:
    """Run `operation` over `items` under the given atomicity policy.

    PER_ITEM: items are processed in chunks, one transaction per chunk and a
    savepoint per item. A ServiceError raised by an item rolls back only that
    item's savepoint and is recorded against `key(item)`. An IntegrityError
    (a constraint the operation did not pre-check) aborts the whole chunk:
    every item of the chunk is reported as a conflict and processing moves on
    to the next chunk. Any other database error propagates.

    WHOLE_BATCH: everything runs in one transaction and the first error is
    raised to the caller with nothing persisted.
    """
    if isinstance(items, (str, bytes, dict)):
        raise ServiceValidationError("Batch items must be a list")
    try:
        items = list(items)
    except TypeError:
        raise ServiceValidationError("Batch items must be a list")
    result = BatchResult()

    if atomicity == Atomicity.WHOLE_BATCH:
        try:
            with transaction.atomic():
                for item in items:
                    result.succeeded.append(operation(item))
        except IntegrityError as exc:
            logger.warning("Whole-batch operation rolled back on integrity error: %s", exc)
            raise ConflictError("Batch violates a uniqueness or integrity rule") from exc
        return result

    size = chunk_size or getattr(settings, "SCHOOL_CORE_BATCH_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)
    if size < 1:
        raise ValueError("chunk_size must be positive")

    for chunk in _chunks(items, size):
        chunk_ok, chunk_errors = [], []
        try:
            with transaction.atomic():
                for item in chunk:
                    try:
                        with transaction.atomic():  # savepoint per item
                            chunk_ok.append(operation(item))
                    except ServiceError as exc:
                        chunk_errors.append(
                            _error_entry(key_name, key(item), exc.message, exc.code)
                        )
        except IntegrityError as exc:
            logger.warning(
                "Chunk of %d item(s) rolled back on integrity error: %s", len(chunk), exc
            )
            chunk_ok = []
            chunk_errors = [
                _error_entry(
                    key_name,
                    key(item),
                    "Storage constraint violated; chunk rolled back",
                    ConflictError.code,
                )
                for item in chunk
            ]
        result.succeeded.extend(chunk_ok)
        result.errors.extend(chunk_errors)

    logger.info(
        "Batch finished: %d succeeded, %d failed", result.success_count, result.error_count
    )
    return result
