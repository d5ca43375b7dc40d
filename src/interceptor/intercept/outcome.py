"""
Authorizer outcomes.

An authorizer answers one question per request: may the handler run?

    allow()                                   → continue the chain
    deny(error, 401, "missing cookie for S")  → stop, reply 401 with the message
    deny(error, 403)                          → stop, reply 403 with str(error)

Denial is a value, not an exception, so the pipeline's control flow stays
a plain loop with an early return.
"""

from dataclasses import dataclass
from typing import Optional, Union


class AuthorizationError(Exception):
    """Error cause for a denial built from a plain string."""


@dataclass(frozen=True)
class AuthOutcome:
    """
    Result of one authorizer call.

    Attributes:
        allowed: True to continue, False to deny.
        error: Cause of a denial. Required when allowed is False.
        status: Status code for the error response. Not validated.
        message: Body of the error response. May be empty.
    """

    allowed: bool
    error: Optional[BaseException] = None
    status: int = 0
    message: str = ""

    def __post_init__(self):
        if not self.allowed and self.error is None:
            raise ValueError("a denied AuthOutcome requires an error cause")

    @property
    def denied(self) -> bool:
        return not self.allowed

    @property
    def reason(self) -> str:
        """
        The text sent to the client on denial.

        The explicit message when there is one, otherwise the error
        cause's own description.
        """
        if self.message:
            return self.message
        return str(self.error) if self.error is not None else ""


ALLOW = AuthOutcome(allowed=True)


def allow() -> AuthOutcome:
    """The allow outcome."""
    return ALLOW


def deny(
    error: Union[BaseException, str],
    status: int,
    message: str = "",
) -> AuthOutcome:
    """
    Build a denial.

    Args:
        error: Exception describing the cause, or a string that becomes
               an AuthorizationError.
        status: HTTP status code for the reply (e.g. 401, 403, 429).
        message: Reply body; falls back to str(error) when empty.

    Returns:
        A denied AuthOutcome.
    """
    if isinstance(error, str):
        error = AuthorizationError(error)
    return AuthOutcome(allowed=False, error=error, status=int(status), message=message or "")
