# hm_core/common/errors.py
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """
    Expected, recoverable rejection of a single requested operation.

    Services raise these; the API layer turns them into the standard error
    envelope (see hm_core.common.api.exceptions). Nothing here is fatal:
    the caller re-fetches state and may retry with corrected input.
    """

    code = "domain_error"
    http_status = 409
    default_message = "Operation rejected."

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = {k: _jsonable(v) for k, v in details.items() if v is not None}
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class NotFound(DomainError):
    code = "not_found"
    http_status = 404
    default_message = "Not found."


class BedNotAvailable(DomainError):
    code = "bed_not_available"
    default_message = "Bed is not available."


class DuplicateAdmission(DomainError):
    code = "duplicate_admission"
    default_message = "Patient already has an open encounter."


class PatientAlreadyAdmitted(DuplicateAdmission):
    code = "patient_already_admitted"
    default_message = "Patient is already admitted."


class EncounterNotOpen(DomainError):
    code = "encounter_not_open"
    default_message = "Encounter is not open."


class NoOpTransfer(DomainError):
    code = "noop_transfer"
    default_message = "Target bed is the encounter's current bed."


class InvalidTransition(DomainError):
    code = "invalid_transition"
    default_message = "Bed status transition is not allowed."


class UnknownVocabulary(DomainError):
    code = "unknown_vocabulary"
    http_status = 400
    default_message = "Value is not in the configured vocabulary."


class SetupConflict(DomainError):
    code = "setup_conflict"
    default_message = "Ward/bed setup rule violated."


class DischargeBeforeAdmission(DomainError):
    code = "discharge_before_admission"
    http_status = 400
    default_message = "Discharge time cannot be earlier than admission time."
