"""Proposal domain errors - translated to HTTP responses in main.py"""

from typing import Optional


class ProposalError(Exception):
    """Base class for every error the proposal domain surfaces to callers"""

    status_code = 400
    code = "proposal_error"

    def __init__(self, detail: str, code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if code:
            self.code = code


class ProposalValidationError(ProposalError):
    status_code = 400
    code = "validation_error"

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail)
        self.field = field


class ProposalNotFoundError(ProposalError):
    status_code = 404
    code = "not_found"


class TokenInvalidError(ProposalError):
    """Malformed, expired, forged or mismatched token. Always the same message."""

    status_code = 401
    code = "invalid_token"

    def __init__(self):
        super().__init__("Invalid or expired token")


class TokenAlreadyUsedError(ProposalError):
    status_code = 409
    code = "token_used"

    def __init__(self):
        super().__init__("Token has already been used")


class ProposalStateConflict(ProposalError):
    status_code = 409
    code = "state_conflict"


class DependencyFailureError(ProposalError):
    """PDF, storage, e-mail, payment or datastore failure"""

    status_code = 502
    code = "dependency_failure"
