"""
Exception types shared by the relay's adapters and routes.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors raised by the relay."""


class ExternalServiceError(RelayError):
    """A call to Airtable, Cloud Storage or reCAPTCHA failed."""


class TableStoreError(ExternalServiceError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(ExternalServiceError):
    pass


class ContentFetchError(ExternalServiceError):
    pass


class AbuseCheckError(ExternalServiceError):
    pass


class RecordNotFoundError(RelayError):
    def __init__(self, table: str, record_id: str):
        super().__init__(f"Record {record_id} not found in {table}")
        self.table = table
        self.record_id = record_id


class InvalidFieldValueError(RelayError):
    def __init__(self, field_name: str, value: object):
        super().__init__(f"Field '{field_name}' expects a number, got {value!r}")
        self.field_name = field_name
        self.value = value


class SecretsUnavailableError(RelayError):
    """Required configuration could not be resolved at startup."""
