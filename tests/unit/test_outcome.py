"""
Unit tests for authorizer outcomes.
"""

import pytest

from interceptor.http import NoCookieError
from interceptor.intercept import AuthOutcome, AuthorizationError, allow, deny


class TestAllow:

    def test_allow(self):
        outcome = allow()

        assert outcome.allowed is True
        assert outcome.denied is False
        assert outcome.error is None


class TestDeny:

    def test_explicit_message_wins(self):
        outcome = deny(NoCookieError("S"), 401, "missing cookie for S")

        assert outcome.denied is True
        assert outcome.status == 401
        assert outcome.reason == "missing cookie for S"

    def test_empty_message_falls_back_to_error(self):
        outcome = deny(NoCookieError("S"), 401)

        assert outcome.message == ""
        assert outcome.reason == "named cookie not present"

    def test_string_error_is_wrapped(self):
        outcome = deny("token expired", 403)

        assert isinstance(outcome.error, AuthorizationError)
        assert outcome.reason == "token expired"

    def test_status_is_not_validated(self):
        assert deny("odd", 799).status == 799

    def test_deny_requires_error(self):
        with pytest.raises(ValueError):
            AuthOutcome(allowed=False, status=401, message="no cause")

    def test_outcome_is_frozen(self):
        outcome = deny("x", 401)

        with pytest.raises(AttributeError):
            outcome.status = 200
