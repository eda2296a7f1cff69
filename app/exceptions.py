"""
Ludoteca - Custom Exceptions
"""
import structlog

logger = structlog.get_logger('exceptions')


class LibraryException(Exception):
    """Base exception for Ludoteca"""
    def __init__(self, message: str, code: str = "LIBRARY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'error': True,
            'code': self.code,
            'message': self.message
        }


class DatabaseException(LibraryException):
    """Database-related exceptions"""
    def __init__(self, message: str):
        super().__init__(message, code="DATABASE_ERROR")
        logger.error(f"Database error: {message}")


class GameClassificationException(LibraryException):
    """A scanned file could not be turned into a usable catalog candidate"""
    def __init__(self, message: str, file_path: str = None):
        super().__init__(message, code="CLASSIFICATION_ERROR")
        self.file_path = file_path
        logger.error(f"Classification error: {message}", file_path=file_path)


class ConflictException(LibraryException):
    """Duplicate provider slug/priority or duplicate natural key"""
    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")
        logger.warning(f"Conflict: {message}")


class NotFoundException(LibraryException):
    """Requested entity does not exist"""
    def __init__(self, message: str, code: str = "NOT_FOUND"):
        super().__init__(message, code=code)
        logger.warning(f"Not found: {message}")


class ProviderNotFoundException(NotFoundException):
    """No metadata provider is registered under the requested slug"""
    def __init__(self, slug: str):
        super().__init__(f"Metadata provider '{slug}' is not registered", code="PROVIDER_NOT_FOUND")
        self.slug = slug


class ValidationException(LibraryException):
    """Validation-related exceptions"""
    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")
        logger.warning(f"Validation error: {message}")


class ProviderException(LibraryException):
    """A metadata provider call failed (network, auth, unexpected payload)"""
    def __init__(self, message: str, slug: str = None):
        super().__init__(message, code="PROVIDER_ERROR")
        self.slug = slug
        logger.error(f"Provider error: {message}", provider=slug)
