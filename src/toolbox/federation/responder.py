"""Popup completion documents for the OAuth flow.

The callback is loaded in a popup opened by the application. Its only job is
to hand the result to the opener window with ``postMessage`` (same origin)
and close itself; without an opener it redirects to a landing page instead.
"""

import logging
from pathlib import Path
from typing import Any

from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.toolbox.auth.models import LocalAccount

logger = logging.getLogger(__name__)

SUCCESS_TYPE = "OAUTH_LOGIN_SUCCESS"
ERROR_TYPE = "OAUTH_LOGIN_ERROR"

template_dir = Path(__file__).parent / "templates"
jinja_env = Environment(
    loader=FileSystemLoader(str(template_dir)),
    autoescape=select_autoescape(["html"]),
)

_NO_STORE_HEADERS = {"Cache-Control": "no-store", "Referrer-Policy": "no-referrer"}


class CompletionResponder:
    """
    Renders the success and failure documents.

    Only the fields in ``LocalAccount.public_summary`` and the user-safe
    message reach the page; provider payloads and exception text never do.

    Example:
        >>> responder = CompletionResponder("/dashboard", "/auth?error=oauth_failed")
        >>> response = responder.emit_success(account)
    """

    def __init__(self, success_path: str, failure_path: str, redirect_delay_ms: int = 2000):
        self.success_path = success_path
        self.failure_path = failure_path
        self.redirect_delay_ms = redirect_delay_ms

    def emit_success(self, account: LocalAccount) -> HTMLResponse:
        payload = {"type": SUCCESS_TYPE, "account": account.public_summary()}
        return self._render(
            payload,
            success=True,
            title="Login successful",
            heading="Zalo login successful!",
            hint="Redirecting...",
            fallback_url=self.success_path,
            status_code=200,
        )

    def emit_failure(self, message: str, code: str = "error", status_code: int = 200) -> HTMLResponse:
        payload = {"type": ERROR_TYPE, "code": code, "message": message}
        return self._render(
            payload,
            success=False,
            title="Login failed",
            heading=message,
            hint="Please try again.",
            fallback_url=self.failure_path,
            status_code=status_code,
        )

    def _render(
        self,
        payload: dict[str, Any],
        *,
        success: bool,
        title: str,
        heading: str,
        hint: str,
        fallback_url: str,
        status_code: int,
    ) -> HTMLResponse:
        template = jinja_env.get_template("completion.html")
        content = template.render(
            payload=payload,
            success=success,
            title=title,
            heading=heading,
            hint=hint,
            fallback_url=fallback_url,
            redirect_delay_ms=self.redirect_delay_ms,
        )
        return HTMLResponse(content=content, status_code=status_code, headers=_NO_STORE_HEADERS)
