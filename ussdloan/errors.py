class LoanServiceError(Exception):
    """Base class for business rule failures raised by the loan components."""


class DuplicateIdentity(LoanServiceError):
    """Phone number or identity document is already registered."""


class ActiveLoanExists(LoanServiceError):
    """Subscriber already holds a pending or active loan."""


class NoActiveLoan(LoanServiceError):
    """Loan is missing or not in a repayable state."""


class LoanNotFound(LoanServiceError):
    pass


class InvalidLoanState(LoanServiceError):
    pass


class UnknownSubscriber(LoanServiceError):
    pass
