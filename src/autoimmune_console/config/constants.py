"""Constants for the Autoimmune Reference Console.

Field names here are the Query Service wire names unless noted otherwise.
"""

from typing import Dict, List, Tuple


# =============================================================================
# Filter hierarchy
# =============================================================================

# Strict dependency chain, root first
FILTER_CHAIN: Tuple[str, ...] = ("disease", "autoantibody", "autoantigen", "epitope")

# Ancestor fields sent when fetching the value set of each chain field.
# Epitope values are scoped by disease and autoantigen only.
VALUE_SCOPE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "disease": (),
    "autoantibody": ("disease",),
    "autoantigen": ("disease", "autoantibody"),
    "epitope": ("disease", "autoantigen"),
}

# Fields accepted by the unscoped /unique/{field} endpoint
UNIQUE_VALUE_FIELDS: Tuple[str, ...] = ("disease", "autoantibody", "autoantigen", "uniprotId", "type")

# Draft attributes that may be set through BrowseEngine.set_field
FILTER_FIELDS: Tuple[str, ...] = (
    "search",
    "search_field",
    "disease",
    "autoantibody",
    "autoantigen",
    "epitope",
    "type",
    "sort_by",
    "sort_order",
)

# Search scopes; "all" is never sent to the service
SEARCH_SCOPES: Tuple[str, ...] = ("all", "disease", "autoantibody", "autoantigen", "epitope", "type")
SEARCH_SCOPE_ALL = "all"

SORT_ASC = "asc"
SORT_DESC = "desc"
SORT_ORDERS: Tuple[str, ...] = (SORT_ASC, SORT_DESC)
DEFAULT_SORT_BY = "disease"
DEFAULT_SORT_ORDER = SORT_ASC

# Groups shown in the suggestion panel, in display order
SUGGESTION_SECTIONS: Tuple[str, ...] = FILTER_CHAIN

# Labels for active filter chips
FILTER_LABELS: Dict[str, str] = {
    "search": "Search",
    "disease": "Disease",
    "autoantibody": "Autoantibody",
    "autoantigen": "Autoantigen",
    "epitope": "Epitope",
    "type": "Type",
}


# =============================================================================
# Entry records
# =============================================================================

REQUIRED_ENTRY_FIELDS: Tuple[str, ...] = ("disease", "autoantibody", "autoantigen")
OPTIONAL_ENTRY_FIELDS: Tuple[str, ...] = ("epitope", "uniprotId", "type")

UNIPROT_ID_PATTERN = r"^[A-Z0-9]{6,10}$"

EXPORT_FORMATS: Tuple[str, ...] = ("json", "csv")

# Spreadsheet header aliases accepted on import (lower-cased, stripped)
IMPORT_COLUMN_ALIASES: Dict[str, str] = {
    "disease": "disease",
    "disease name": "disease",
    "autoantibody": "autoantibody",
    "autoantibodies": "autoantibody",
    "antibody": "autoantibody",
    "autoantigen": "autoantigen",
    "autoantigens": "autoantigen",
    "antigen": "autoantigen",
    "epitope": "epitope",
    "uniprot": "uniprotId",
    "uniprot id": "uniprotId",
    "uniprotid": "uniprotId",
    "uniprot_id": "uniprotId",
    "type": "type",
}

# Column order for local CSV / Excel exports
EXPORT_COLUMNS: List[str] = [
    "_id",
    "disease",
    "autoantibody",
    "autoantigen",
    "epitope",
    "uniprotId",
    "type",
    "createdAt",
    "updatedAt",
]

EXPORT_COLUMN_WIDTHS: Dict[str, int] = {
    "_id": 26,
    "disease": 30,
    "autoantibody": 28,
    "autoantigen": 28,
    "epitope": 24,
    "uniprotId": 14,
    "type": 14,
    "createdAt": 22,
    "updatedAt": 22,
}


# =============================================================================
# Users
# =============================================================================

ROLE_SUPER_ADMIN = "superAdmin"
ROLE_ADMIN = "Admin"
ROLE_DOCTOR = "Doctor"
ROLE_RECEPTIONIST = "Receptionist"
ROLE_ACCOUNTANT = "Accountant"

USER_ROLES: Tuple[str, ...] = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_DOCTOR, ROLE_RECEPTIONIST, ROLE_ACCOUNTANT)

# Roles each role may assign when creating users
ASSIGNABLE_ROLES: Dict[str, List[str]] = {
    ROLE_SUPER_ADMIN: [ROLE_ADMIN, ROLE_DOCTOR, ROLE_RECEPTIONIST, ROLE_ACCOUNTANT],
    ROLE_ADMIN: [ROLE_DOCTOR, ROLE_RECEPTIONIST, ROLE_ACCOUNTANT],
}

REQUIRED_USER_FIELDS: Tuple[str, ...] = ("name", "username", "email", "password", "role", "contactNumber")
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
CONTACT_NUMBER_PATTERN = r"^\d{10}$"
MIN_PASSWORD_LENGTH = 6
