# marketplace/errors.py
"""Domain errors. main.py renders every one of these as {"error": message}."""


class MarketplaceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    status_code = 400


class InsufficientCredits(MarketplaceError):
    status_code = 402


class Unauthorized(MarketplaceError):
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class JobClosed(MarketplaceError):
    status_code = 409


class BidCapReached(JobClosed):
    """The job closed because every bid slot is taken."""


class DuplicateBid(MarketplaceError):
    status_code = 409


class DuplicateProfile(MarketplaceError):
    status_code = 409


class InvalidSignature(MarketplaceError):
    status_code = 400


class UpstreamFailure(MarketplaceError):
    status_code = 500
