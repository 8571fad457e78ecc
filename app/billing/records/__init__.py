"""
Durable record storage for billing entities.

Usage:
    from billing.records import JsonRecordStore, RecordSchema
"""

from billing.records.schema import RecordSchema, to_datetime, to_decimal
from billing.records.store import JsonRecordStore, generate_record_id

__all__ = [
    "JsonRecordStore",
    "RecordSchema",
    "generate_record_id",
    "to_datetime",
    "to_decimal",
]
