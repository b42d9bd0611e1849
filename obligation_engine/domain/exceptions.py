"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidPlanOptionsError(DomainException):
    """Payment plan options are outside the supported strategies or horizon"""

    pass


class ChargeAPIError(DomainException):
    """Charge service returned an error or is unavailable"""

    pass
