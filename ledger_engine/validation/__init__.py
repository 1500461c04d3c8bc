"""Row validation package."""

from ledger_engine.validation.rows import (
    DATE_FORMATS,
    ParsedImportRow,
    build_export_row,
    parse_import_row,
    parse_row_currency,
    parse_row_date,
    parse_row_type,
)

__all__ = [
    "DATE_FORMATS",
    "ParsedImportRow",
    "build_export_row",
    "parse_import_row",
    "parse_row_currency",
    "parse_row_date",
    "parse_row_type",
]
