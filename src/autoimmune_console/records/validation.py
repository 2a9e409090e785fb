"""Client-side validation for entry and user payloads.

These checks run before anything is submitted. Uniqueness and duplicate
additional-field keys are left to the Query Service.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from autoimmune_console.config.constants import (
    ASSIGNABLE_ROLES,
    CONTACT_NUMBER_PATTERN,
    EMAIL_PATTERN,
    MIN_PASSWORD_LENGTH,
    OPTIONAL_ENTRY_FIELDS,
    REQUIRED_ENTRY_FIELDS,
    REQUIRED_USER_FIELDS,
    ROLE_DOCTOR,
    UNIPROT_ID_PATTERN,
)
from autoimmune_console.errors import EntryValidationError, UserValidationError

_UNIPROT_RE = re.compile(UNIPROT_ID_PATTERN)
_EMAIL_RE = re.compile(EMAIL_PATTERN)
_CONTACT_RE = re.compile(CONTACT_NUMBER_PATTERN)

AdditionalFields = List[Tuple[str, str]]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def additional_fields_from_mapping(additional: Optional[Mapping[str, Any]]) -> AdditionalFields:
    """Turn a stored ``additional`` map into editable (key, value) pairs."""
    if not additional:
        return []
    return [(str(key), "" if value is None else str(value)) for key, value in additional.items()]


def additional_fields_to_mapping(pairs: Iterable[Sequence[str]]) -> Dict[str, str]:
    """
    Collapse (key, value) pairs into the ``additional`` map sent to the service.

    Keys are trimmed. Empty keys are rejected; a repeated key keeps the last
    value, matching how the service stores the map.

    Raises:
        EntryValidationError: If any pair has an empty key.
    """
    result: Dict[str, str] = {}
    errors = {}
    for index, pair in enumerate(pairs):
        key, value = pair[0], pair[1] if len(pair) > 1 else ""
        key = _text(key)
        if not key:
            errors[f"additional[{index}]"] = "Field name is required"
            continue
        result[key] = "" if value is None else str(value)
    if errors:
        raise EntryValidationError(errors)
    return result


def validate_entry(payload: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize an entry payload.

    Args:
        payload: Entry fields. ``additional`` may be a mapping or a list of
            (key, value) pairs.
        partial: If True, only fields present in the payload are checked
            (updates).

    Returns:
        Normalized payload with trimmed strings. Blank optionals are removed,
        except on partial updates where a blank clears the stored value.

    Raises:
        EntryValidationError: With a field -> message map.
    """
    errors = {}
    normalized: Dict[str, Any] = {}

    for name in REQUIRED_ENTRY_FIELDS:
        if partial and name not in payload:
            continue
        value = _text(payload.get(name))
        if not value:
            errors[name] = f"{name.capitalize()} is required"
        else:
            normalized[name] = value

    for name in OPTIONAL_ENTRY_FIELDS:
        value = _text(payload.get(name))
        # An update sends a present-but-blank optional to clear it
        if value or (partial and name in payload):
            normalized[name] = value

    uniprot_id = normalized.get("uniprotId")
    if uniprot_id and not _UNIPROT_RE.match(uniprot_id):
        errors["uniprotId"] = "UniProt ID should be 6-10 alphanumeric characters"

    additional = payload.get("additional")
    if additional is not None:
        pairs = additional.items() if isinstance(additional, Mapping) else additional
        try:
            normalized["additional"] = additional_fields_to_mapping(pairs)
        except EntryValidationError as e:
            errors.update(e.errors)

    if errors:
        raise EntryValidationError(errors)
    return normalized


def assignable_roles(current_role: Optional[str]) -> List[str]:
    """Roles a user with ``current_role`` may assign to new users."""
    return list(ASSIGNABLE_ROLES.get(current_role or "", []))


def validate_new_user(payload: Mapping[str, Any], current_role: Optional[str] = None) -> Dict[str, Any]:
    """
    Validate a new-user payload.

    Args:
        payload: User fields.
        current_role: Role of the signed-in user; when given, the requested
            role must be one it may assign.

    Returns:
        Normalized payload.

    Raises:
        UserValidationError: With a field -> message map.
    """
    errors = {}
    normalized = {key: (value.strip() if isinstance(value, str) and key != "password" else value)
                  for key, value in payload.items()}

    missing = [name for name in REQUIRED_USER_FIELDS if not _text(payload.get(name))]
    if missing:
        for name in missing:
            errors[name] = "This field is required"
        raise UserValidationError(errors)

    for name in ("email", "contactNumber"):
        normalized[name] = _text(payload[name])

    if not _EMAIL_RE.match(normalized["email"]):
        errors["email"] = "Please enter a valid email address"

    if not _CONTACT_RE.match(normalized["contactNumber"]):
        errors["contactNumber"] = "Please enter a valid 10-digit contact number"

    if len(str(payload["password"])) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"

    if current_role is not None and normalized["role"] not in assignable_roles(current_role):
        errors["role"] = f"{current_role} cannot create {normalized['role']} accounts"

    charges = payload.get("consultationCharges")
    if normalized["role"] == ROLE_DOCTOR and _text(charges):
        try:
            normalized["consultationCharges"] = float(charges)
        except (TypeError, ValueError):
            errors["consultationCharges"] = "Please enter a valid consultation charge amount"
    else:
        normalized.pop("consultationCharges", None)

    if errors:
        raise UserValidationError(errors)
    return normalized
