"""
Page rendering for the login, consent and logout steps.

The orchestrator only hands a page name and view data to a Responder, so a
host can swap in its own templates. HTMLResponder is the built-in
implementation: small self-contained pages rendered from f-strings.
"""

from html import escape
from typing import Any, Dict, Iterable, Protocol

from starlette.requests import Request
from starlette.responses import HTMLResponse, Response

from ..exceptions import ChallengeExpired, ChallengeNotFound, ConsentFlowError
from .forms import PAGE_CONSENT, PAGE_LOGIN, PAGE_LOGOUT

# View data key for the form error message
DATA_ERR = "error"


class Responder(Protocol):
    def respond(self, request: Request, status_code: int, page: str, data: Dict[str, Any]) -> Response:
        ...

    def error(self, request: Request, exc: ConsentFlowError) -> Response:
        ...


# =============================================================================
# HTML Responder
# =============================================================================

_STYLE = """
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
        background: #f3f4f6;
        min-height: 100vh;
        display: flex;
        align-items: center;
        justify-content: center;
        padding: 20px;
    }
    .container {
        background: white;
        border-radius: 12px;
        padding: 40px;
        max-width: 480px;
        width: 100%;
        box-shadow: 0 10px 40px rgba(0,0,0,0.1);
    }
    h1 { color: #1f2937; font-size: 24px; margin-bottom: 16px; }
    p { color: #4b5563; line-height: 1.6; margin-bottom: 16px; }
    label { display: block; color: #374151; margin-bottom: 12px; }
    input[type=text], input[type=password] {
        width: 100%; padding: 10px; border: 1px solid #d1d5db; border-radius: 6px; margin-top: 4px;
    }
    .error { color: #b91c1c; background: #fef2f2; padding: 12px; border-radius: 6px; margin-bottom: 16px; }
    .actions { display: flex; gap: 12px; margin-top: 24px; }
    button {
        background: #667eea; color: white; border: none; padding: 12px 24px;
        border-radius: 8px; font-weight: 600; font-size: 15px; cursor: pointer;
    }
    button.secondary { background: #e5e7eb; color: #1f2937; }
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape(title)}</title>
    <style>{_STYLE}</style>
</head>
<body>
    <div class="container">
        {body}
    </div>
</body>
</html>
"""


def _hidden(name: str, value: Any) -> str:
    return f'<input type="hidden" name="{escape(name)}" value="{escape(str(value))}">'


def _hidden_list(name: str, values: Iterable[Any]) -> str:
    return "\n".join(_hidden(name, v) for v in values)


def _client_name(data: Dict[str, Any]) -> str:
    client = data.get("client") or {}
    return client.get("client_name") or client.get("client_id") or "An application"


class HTMLResponder:
    """Render the built-in HTML pages."""

    def respond(self, request: Request, status_code: int, page: str, data: Dict[str, Any]) -> Response:
        if page == PAGE_LOGIN:
            content = self._login(data)
        elif page == PAGE_CONSENT:
            content = self._consent(data)
        elif page == PAGE_LOGOUT:
            content = self._logout(data)
        else:
            raise ValueError(f"unknown page: {page}")
        return HTMLResponse(content=content, status_code=status_code)

    def error(self, request: Request, exc: ConsentFlowError) -> Response:
        """
        Render the generic failure page for `exc`.

        Expired or unknown challenges tell the user to start over from the
        application, since the same challenge can never succeed again.
        """
        if isinstance(exc, (ChallengeExpired, ChallengeNotFound)):
            message = "This sign-in request is no longer valid. Please return to the application and start again."
        elif exc.status_code >= 500:
            message = "Something went wrong while processing your request. Please try again later."
        else:
            message = "Your request could not be processed."

        body = f"""
        <h1>{escape(exc.title)}</h1>
        <p>{escape(message)}</p>
        <p>Need help? Contact your system administrator.</p>
        """
        return HTMLResponse(content=_page(exc.title, body), status_code=exc.status_code)

    # =========================================================================
    # Pages
    # =========================================================================

    @staticmethod
    def _login(data: Dict[str, Any]) -> str:
        error = data.get(DATA_ERR)
        error_html = f'<div class="error">{escape(error)}</div>' if error else ""
        body = f"""
        <h1>Sign in</h1>
        <p>{escape(_client_name(data))} wants you to sign in.</p>
        {error_html}
        <form method="post" action="/login">
            {_hidden("challenge", data.get("challenge", ""))}
            <label>Username <input type="text" name="username" autocomplete="username" required></label>
            <label>Password <input type="password" name="password" autocomplete="current-password" required></label>
            <label><input type="checkbox" name="remember" value="true"> Remember me</label>
            <div class="actions"><button type="submit">Sign in</button></div>
        </form>
        """
        return _page("Sign in", body)

    @staticmethod
    def _consent(data: Dict[str, Any]) -> str:
        scopes = "\n".join(
            f'<label><input type="checkbox" name="scopes[]" value="{escape(s)}" checked> {escape(s)}</label>'
            for s in data.get("requested_scope", [])
        )
        subject = data.get("subject") or "you"
        body = f"""
        <h1>Authorize {escape(_client_name(data))}</h1>
        <p>Hi {escape(subject)}, the application requests access to:</p>
        <form method="post" action="/consent">
            {_hidden("challenge", data.get("challenge", ""))}
            {_hidden_list("requestedAudience[]", data.get("requested_audience", []))}
            {scopes}
            <label><input type="checkbox" name="remember" value="true"> Do not ask me again</label>
            <div class="actions">
                <button type="submit" name="isAllowed" value="true">Allow</button>
                <button type="submit" name="isAllowed" value="false" class="secondary">Deny</button>
            </div>
        </form>
        """
        return _page("Authorize", body)

    @staticmethod
    def _logout(data: Dict[str, Any]) -> str:
        body = f"""
        <h1>Sign out</h1>
        <p>Do you want to sign out?</p>
        <form method="post" action="/logout">
            {_hidden("challenge", data.get("challenge", ""))}
            <div class="actions">
                <button type="submit" name="shouldLogout" value="true">Yes, sign out</button>
                <button type="submit" name="shouldLogout" value="false" class="secondary">No</button>
            </div>
        </form>
        """
        return _page("Sign out", body)
