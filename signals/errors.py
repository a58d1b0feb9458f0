class SignalError(Exception):
    """Base class for external signal errors."""
    pass


class SignalFetchError(SignalError):
    """Raised when an upstream signal service fails or returns an unusable response."""
    pass


class SignalUnavailableError(SignalError):
    """Raised when the network is off limits and nothing is cached for the key."""
    pass


class SignalCancelledError(SignalError):
    """Raised when an in-flight fetch is cancelled by the caller."""
    pass
