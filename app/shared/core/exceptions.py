from typing import Optional, Dict, Any

class ReaperException(Exception):
    """Base exception for all kube-ttl-reaper errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

class ConfigurationError(ReaperException):
    """Raised when cluster credentials or application configuration are unusable."""
    def __init__(self, message: str, code: str = "config_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)

class ClusterAPIError(ReaperException):
    """Raised when a request to the cluster API server fails."""
    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: str = "cluster_api_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

class DiscoveryError(ReaperException):
    """Raised when the API server's resource types cannot be discovered."""
    def __init__(self, message: str, code: str = "discovery_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)

class ResourceListError(ReaperException):
    """Raised when listing a resource-kind keeps failing after all retries."""
    def __init__(self, message: str, code: str = "list_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)

class DurationParseError(ReaperException, ValueError):
    """Raised when a lifespan string is not a valid duration."""
    def __init__(self, message: str, code: str = "invalid_duration", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)

class ReconciliationTimeoutError(ReaperException):
    """Raised when a reconciliation pass exceeds its execution deadline."""
    def __init__(self, message: str = "execution timed out", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="timeout_error", details=details)

class SupervisorAbortError(ReaperException):
    """Raised when too many consecutive reconciliation passes have failed."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="too_many_failures", details=details)
