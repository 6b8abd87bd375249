"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Profile, account or call session could not be resolved"""

    pass


class NotMatchedError(DomainException):
    """Call attempted between users who are not matched"""

    pass


class InsufficientCreditsError(DomainException):
    """Caller has no active, non-expired call credits"""

    pass


class ProviderError(DomainException):
    """Telephony provider returned an error or is unavailable"""

    pass


class ForbiddenError(DomainException):
    """Requesting user is not a participant of the call session"""

    pass


class InvalidProfileError(DomainException):
    """Requester profile is structurally unusable for ranking"""

    pass


class InvalidRecordError(DomainException):
    """A stored row is missing a field the domain requires"""

    pass


class CreditDeductionError(DomainException):
    """Credits could not be deducted after repeated concurrent conflicts"""

    pass


class SessionAlreadyTerminalError(DomainException):
    """Webhook event for a session that already reached a terminal state"""

    pass
