"""Back office login.

Submitting the form can "succeed" at the transport level and still land back
on the login page when the credentials are wrong. login() therefore inspects
where the browser ended up instead of trusting the absence of an exception.
"""

import logging
from urllib.parse import urlparse

from .config import LOGIN_URL, NAVIGATION_TIMEOUT_MS
from .errors import AuthenticationError
from .helpers import mask_email

log = logging.getLogger(__name__)

EMAIL_INPUT = 'input[name="email"]'
PASSWORD_INPUT = 'input[name="password"]'
SUBMIT_BUTTON = 'button[type="submit"]'


def _on_login_page(url: str, login_url: str = LOGIN_URL) -> bool:
    login_path = urlparse(login_url).path.rstrip("/")
    return urlparse(url).path.rstrip("/") == login_path


def login(browser, email: str, password: str, timeout_ms: int = NAVIGATION_TIMEOUT_MS) -> None:
    """Sign in to the back office with the given browser session.

    Raises:
        NavigationTimeout: the login page or the post-submit load stalled
        AuthenticationError: still on the login page after submitting
    """
    log.info(f"Logging in as {mask_email(email)}...")
    browser.navigate(LOGIN_URL, wait_until="domcontentloaded", timeout_ms=timeout_ms)
    browser.fill(EMAIL_INPUT, email)
    browser.fill(PASSWORD_INPUT, password)
    browser.click(SUBMIT_BUTTON)
    browser.wait_for_load("networkidle", timeout_ms=timeout_ms)

    landed = browser.current_url
    if _on_login_page(landed):
        raise AuthenticationError("Credentials rejected: still on the login page after submit")
    log.info(f"Logged in (landed on {urlparse(landed).path or '/'})")
