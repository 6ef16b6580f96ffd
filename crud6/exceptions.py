"""
Domain exceptions.

Each exception carries the HTTP status the API layer answers with; the
handlers in `crud6.api.main` translate them into JSON responses.
"""
from typing import Dict, List, Optional


class CRUD6Exception(Exception):
    status_code = 500

    def __init__(self, message: str = "CRUD6 error"):
        super().__init__(message)
        self.message = message


class SchemaNotFoundException(CRUD6Exception):
    status_code = 404


class SchemaValidationException(CRUD6Exception):
    status_code = 500


class RecordNotFoundException(CRUD6Exception):
    status_code = 404


class InvalidModelName(CRUD6Exception):
    status_code = 400


class ConnectionNotConfigured(CRUD6Exception):
    status_code = 400


class ValidationException(CRUD6Exception):
    status_code = 400

    def __init__(self, errors: Optional[Dict[str, List[str]]] = None, message: str = "Validation failed"):
        super().__init__(message)
        self.errors = errors or {}
