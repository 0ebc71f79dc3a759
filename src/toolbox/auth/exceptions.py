"""Custom exceptions for federated authentication.

Every failure in the login flow is a ``FederationError``. Each subclass
carries a stable ``code`` (used in logs, analytics and the error payload
posted to the opener window) and a short ``user_message`` that is safe to
render in the browser. The exception's own ``str()`` may hold diagnostic
detail and must only ever be logged.
"""


class FederationError(Exception):
    """Base exception for the federated login flow."""

    code = "federation_error"
    user_message = "Login failed. Please try again."


class ConfigurationError(FederationError):
    """Raised when the provider integration is disabled or missing credentials."""

    code = "configuration_error"
    user_message = "Zalo login is not available right now. Please contact an administrator."


class MissingCode(FederationError):
    """Raised when the provider redirect carries no authorization code."""

    code = "missing_code"
    user_message = "Zalo did not return an authorization code. Please try again."


class AuthorizationDenied(MissingCode):
    """Raised when the provider redirect carries an ``error`` instead of a code."""

    code = "authorization_denied"
    user_message = "Zalo login was cancelled or denied."


class MissingState(FederationError):
    """Raised when the provider redirect carries no state parameter."""

    code = "missing_state"
    user_message = "The login request is incomplete. Please try again."


class InvalidOrExpiredState(FederationError):
    """Raised when the state is unknown, already used, or expired."""

    code = "invalid_state"
    user_message = "Your login session is invalid or has expired. Please try again."


class TokenExchangeFailed(FederationError):
    """Raised when the authorization code cannot be exchanged for an access token."""

    code = "token_exchange_failed"
    user_message = "Could not verify your Zalo login. Please try again."


class AccountResolutionFailed(FederationError):
    """Raised when no usable identity or local account could be derived."""

    code = "account_resolution_failed"
    user_message = "Could not retrieve your Zalo account information. Please try again."


class SessionEstablishmentFailed(FederationError):
    """Raised when the local session could not be created."""

    code = "session_failed"
    user_message = "Could not sign you in due to a server problem. Please try again later."


class DuplicateAccountError(Exception):
    """Raised by account storage when a uniqueness constraint rejects an insert."""

    pass


class AuthenticationError(Exception):
    """Raised when a session cookie is missing, invalid, or revoked."""

    pass
