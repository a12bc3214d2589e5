"""Domain errors raised by the services and mapped to HTTP codes in ``main``."""


class MarketplaceError(Exception):
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    """Bad or missing submission fields."""

    status_code = 422


class NotFound(MarketplaceError):
    status_code = 404


class Forbidden(MarketplaceError):
    status_code = 403


class InvalidTransition(MarketplaceError):
    """A lifecycle guard refused the requested status change."""

    status_code = 409

    def __init__(self, message: str = "", current=None, target=None):
        super().__init__(message)
        self.current = current
        self.target = target


class ProviderUnavailable(MarketplaceError):
    """The payment provider is unreachable or not configured."""

    status_code = 502


class VerificationTimeout(MarketplaceError):
    """The poller gave up before the provider reported a final status.

    The payment itself stays ``pending``; the student is told to contact
    support with ``reference``.
    """

    status_code = 504

    def __init__(self, message: str = "", reference: str = None, attempts: int = 0):
        super().__init__(message)
        self.reference = reference
        self.attempts = attempts
