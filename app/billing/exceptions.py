"""
Billing-specific exceptions.

Expected business outcomes (not found, invalid state, validation,
ownership mismatch) are reported through ServiceResult error codes, see
billing.constants.ErrorCode. The exceptions here cover conditions a
caller cannot branch on: storage failures and programming errors in
record schemas.

Exception Hierarchy:
    RecordStoreError - Collection file could not be read or written
                       (inherits PersistenceError)
    DuplicateRecordIdError - Generated id already present
                             (inherits ConflictError)
    SchemaDefinitionError - Invalid RecordSchema declaration
                            (inherits TypeError)

Usage:
    from billing.exceptions import RecordStoreError

    try:
        store.create(**data)
    except RecordStoreError as e:
        logger.error(f"Store write failed: {e}")
        raise
"""

from __future__ import annotations

from core.exceptions import ConflictError, PersistenceError


class RecordStoreError(PersistenceError):
    """
    Raised when a record collection cannot be loaded or flushed.

    The in-memory collection is left as it was before the failed call,
    so prior state is never corrupted.

    Example:
        raise RecordStoreError(
            "Could not parse subscriptions collection",
            details={"path": str(path)}
        )
    """

    default_error_code: str = "PERSISTENCE_FAILURE"


class DuplicateRecordIdError(ConflictError):
    """
    Raised when a freshly generated record id is already taken.

    Treated as fatal: the store never overwrites an existing record.
    """

    default_error_code: str = "DUPLICATE_RECORD_ID"


class SchemaDefinitionError(TypeError):
    """
    Raised at definition time when a RecordSchema names a field the
    record type does not have, or a temporal field that is not a datetime.
    """
