# src/design2code/services/exceptions.py

from typing import Optional

class ServiceException(Exception):
    """Base exception for all service layer errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class NotFoundError(ServiceException):
    """Raised when a referenced design, annotation, document or task does not exist."""
    pass

class RevisionNotFoundError(NotFoundError):
    """Raised when a DSL revision other than the current one is requested."""
    def __init__(self, message: str, current_revision: Optional[int] = None):
        self.current_revision = current_revision
        super().__init__(message)

class ConflictError(ServiceException):
    """Raised on optimistic concurrency failures, duplicate versions and illegal state transitions."""
    pass

class ValidationError(ServiceException):
    """Raised when caller input is structurally valid but semantically unacceptable."""
    pass

class StorageError(ServiceException):
    """Raised when the object store rejects an upload."""
    pass

class DesignSourceError(ServiceException):
    """Raised when the upstream design source cannot resolve a link or return DSL."""
    pass
