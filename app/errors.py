# app/errors.py
"""
Error taxonomy for the toilet state model.

Services raise these; routers translate them into HTTP responses.
Every validation error is raised before any row is written.
"""


class ToiletError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ToiletError):
    """Missing/malformed field, wrong amount, unknown enum value."""


class AmountMismatchError(ValidationError):
    """Automated confirmation amount differs from the tariff."""


class ToiletNotFoundError(ToiletError):
    status_code = 404

    def __init__(self, toilet_id: str):
        super().__init__(f"Toilet '{toilet_id}' not found")
        self.toilet_id = toilet_id


class OverrideNotPermittedError(ToiletError):
    """Manual open / door toggle attempted while manual_open_enabled is off."""

    status_code = 403


class ConflictError(ToiletError):
    """Conditional write lost against a newer revision. Safe to retry after re-reading."""

    status_code = 409
    retryable = True

    def __init__(self, toilet_id: str, expected_revision: int, groups):
        super().__init__(
            f"Toilet '{toilet_id}' was modified after revision {expected_revision} "
            f"({', '.join(sorted(groups))}); re-read and retry"
        )
        self.toilet_id = toilet_id
        self.expected_revision = expected_revision
        self.groups = set(groups)


class StoreError(ToiletError):
    """Underlying record store unreachable or the write was rejected."""

    status_code = 500
