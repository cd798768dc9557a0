"""Unit Tests for cancellable request handles."""

import pytest

from schedule_engine.cancellation import CancellationToken, RequestScope
from schedule_engine.errors import RequestCancelledError


class TestCancellationToken:

    def test_fresh_token(self):
        token = CancellationToken("list")
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancellationToken("list")
        token.cancel()
        token.cancel()
        assert token.cancelled
        with pytest.raises(RequestCancelledError, match="list"):
            token.raise_if_cancelled()


class TestRequestScope:

    def test_close_cancels_issued_tokens(self):
        scope = RequestScope("detail view")
        first, second = scope.token("item"), scope.token("stats")
        scope.close()

        assert scope.closed
        assert first.cancelled and second.cancelled

    def test_token_after_close_is_cancelled(self):
        scope = RequestScope()
        scope.close()
        assert scope.token().cancelled

    def test_context_manager(self):
        with RequestScope("list view") as scope:
            token = scope.token()
            assert not token.cancelled
        assert token.cancelled
