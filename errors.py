"""
Error taxonomy shared by the services and the HTTP layer.
Services raise these; main.py turns them into JSON responses.
"""


class LedgerError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Missing or malformed input. Never retried."""
    status_code = 400
    default_message = "Invalid request"


class ConflictError(LedgerError):
    """Uniqueness violation on tm_number / ic_number / class_name."""
    status_code = 409
    default_message = "Record already exists"


class NotFoundError(LedgerError):
    status_code = 404
    default_message = "Not found"


class StoreError(LedgerError):
    """Entity store failure. The message never carries driver detail."""
    status_code = 500
