"""Schema checks, structural checks and sanitization."""

from chatlog_pipeline.validation.integrity import (
    AnomalyReport,
    check_anomalies,
    check_data_integrity,
    validate_record,
)
from chatlog_pipeline.validation.sanitizer import recover_records, sanitize_record, sanitize_records
from chatlog_pipeline.validation.schema import SchemaValidator, ValidationReport, parse_entry

__all__ = [
    "AnomalyReport",
    "SchemaValidator",
    "ValidationReport",
    "check_anomalies",
    "check_data_integrity",
    "parse_entry",
    "recover_records",
    "sanitize_record",
    "sanitize_records",
    "validate_record",
]
