"""
Cache Domain Exceptions

Domain-specific exceptions for cache operations.
Stale serving is never an error; only failed loads and bad configuration are.
"""

from typing import Optional, Any, Dict


class CacheException(Exception):
    """Base exception for cache-related errors.

    All cache operations should raise this or its subclasses.
    Never swallow loader exceptions on a blocking read - always preserve context.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class LoadError(CacheException):
    """Raised when a domain loader rejects or raises."""

    def __init__(
        self,
        domain: str,
        message: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        details: Dict[str, Any] = {"domain": domain}
        if original_error is not None:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message or f"Loader for domain '{domain}' failed",
            error_code="CACHE_LOAD_ERROR",
            details=details,
        )
        self.domain = domain
        # Preserve exception context for debugging (exception chaining)
        if original_error is not None:
            self.__cause__ = original_error


class ConfigurationError(CacheException):
    """Raised when a freshness policy or domain registration is invalid."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message, error_code="CACHE_CONFIGURATION_ERROR", details=details
        )


class UnknownWriteSourceError(CacheException):
    """Raised when an entry install does not come from a permitted writer."""

    def __init__(self, domain: str, source: Any):
        super().__init__(
            message=f"Entry writes to '{domain}' must come from a loader, "
            f"an optimistic mutation or an invalidation (got {source!r})",
            error_code="CACHE_WRITE_REJECTED",
            details={"domain": domain, "source": repr(source)},
        )
