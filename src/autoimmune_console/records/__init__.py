"""Entry and user record helpers: validation, import and export."""

from .validation import (
    additional_fields_from_mapping,
    additional_fields_to_mapping,
    assignable_roles,
    validate_entry,
    validate_new_user,
)
from .transfer import (
    EntryExporter,
    ImportReport,
    RowError,
    entries_to_frame,
    read_entry_file,
    upload_entries,
)

__all__ = [
    "additional_fields_from_mapping",
    "additional_fields_to_mapping",
    "assignable_roles",
    "validate_entry",
    "validate_new_user",
    "EntryExporter",
    "ImportReport",
    "RowError",
    "entries_to_frame",
    "read_entry_file",
    "upload_entries",
]
