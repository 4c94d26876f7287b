class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class JobNotFoundError(DomainError):
    """Exception raised when a job id is not known to the scheduler."""

    pass


class JobNotRetryableError(DomainError):
    """Exception raised when retrying a job that has not failed."""

    pass


class InvalidJobTransitionError(DomainError):
    """Exception raised when a job status change would move backwards."""

    pass


class DiscoveryNotPromotableError(DomainError):
    """Exception raised when a discovery is unknown or not yet promotable."""

    pass
