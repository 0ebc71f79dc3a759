"""Tests for callback validation."""

import pytest

from src.toolbox.auth.exceptions import (
    AuthorizationDenied,
    InvalidOrExpiredState,
    MissingCode,
    MissingState,
)
from src.toolbox.federation.callback import CallbackValidator


@pytest.mark.asyncio
class TestCallbackValidator:
    """Tests for CallbackValidator.validate."""

    async def test_valid_callback_returns_code_and_verifier(self, store):
        """Test that a known state yields the registered verifier."""
        await store.put("state-1", "verifier-1")

        result = await CallbackValidator(store).validate("code-1", "state-1")

        assert result.code == "code-1"
        assert result.code_verifier == "verifier-1"

    async def test_missing_code_raises(self, store):
        """Test that a redirect without a code is rejected."""
        with pytest.raises(MissingCode):
            await CallbackValidator(store).validate(None, "state-1")

    async def test_provider_error_raises_denied_and_consumes_state(self, store):
        """Test that a denied authorization drops the pending record."""
        await store.put("state-1", "verifier-1")

        with pytest.raises(AuthorizationDenied):
            await CallbackValidator(store).validate(None, "state-1", error="access_denied")

        assert len(store) == 0

    async def test_denied_is_a_missing_code(self, store):
        """Test that denial is reported under the missing-code family."""
        with pytest.raises(MissingCode):
            await CallbackValidator(store).validate("", None, error="access_denied")

    async def test_missing_state_raises(self, store):
        """Test that a redirect without state is rejected."""
        with pytest.raises(MissingState):
            await CallbackValidator(store).validate("code-1", None)

    async def test_unknown_state_raises(self, store):
        """Test that a state that was never issued is rejected."""
        with pytest.raises(InvalidOrExpiredState):
            await CallbackValidator(store).validate("code-1", "forged")

    async def test_replay_is_rejected(self, store):
        """Test that the same state cannot be validated twice."""
        await store.put("state-1", "verifier-1")
        validator = CallbackValidator(store)

        await validator.validate("code-1", "state-1")

        with pytest.raises(InvalidOrExpiredState):
            await validator.validate("code-1", "state-1")

    async def test_expired_state_raises(self, store, clock):
        """Test that a state older than the TTL is rejected."""
        await store.put("state-1", "verifier-1")
        clock.advance(601)

        with pytest.raises(InvalidOrExpiredState):
            await CallbackValidator(store).validate("code-1", "state-1")
