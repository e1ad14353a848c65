"""Centralized configuration with env var overrides.

Tunables live here as module constants. Credentials and the store descriptor
are validated by load_settings() before the checker touches the network.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .detector import BootstrapPolicy
from .errors import ConfigurationError, StoreError
from .helpers import mask_url
from .store import resolve_descriptor

PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env")

# ── Back office ──
BACKOFFICE_URL = os.environ.get("BACKOFFICE_URL", "https://backoffice.loyverse.com").rstrip("/")
LOGIN_URL = f"{BACKOFFICE_URL}/login"
STOCK_HISTORY_URL = f"{BACKOFFICE_URL}/inventory/stock_history"

# ── Browser ──
HEADLESS = os.environ.get("HEADLESS", "true").strip().lower() not in ("0", "false", "no")
NAVIGATION_TIMEOUT_MS = int(os.environ.get("NAVIGATION_TIMEOUT_MS", 30_000))
RENDER_TIMEOUT_MS = int(os.environ.get("RENDER_TIMEOUT_MS", 15_000))
SCREENSHOT_DIR = os.environ.get("SCREENSHOT_DIR", "").strip() or None

# ── Email ──
SMTP_HOST = os.environ.get("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.environ.get("SMTP_PORT", 465))  # 465 = implicit TLS, else STARTTLS
SMTP_TIMEOUT = float(os.environ.get("SMTP_TIMEOUT", 30))

# ── Logging ──
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

_REQUIRED = (
    "LOYVERSE_EMAIL",
    "LOYVERSE_PASSWORD",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "ALERT_EMAIL",
    "STORE_URL",
)


@dataclass(frozen=True)
class Settings:
    """Validated run settings. Built once per run by load_settings()."""
    loyverse_email: str
    loyverse_password: str
    smtp_user: str
    smtp_password: str
    email_from: str
    alert_email: str
    store_url: str
    history_window: int | None
    bootstrap_policy: BootstrapPolicy

    def __repr__(self) -> str:
        return (f"Settings(store_url={mask_url(self.store_url)!r}, history_window={self.history_window}, "
                f"bootstrap_policy={self.bootstrap_policy.value!r})")


def _parse_window(raw: str) -> int | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        window = int(raw)
    except ValueError:
        raise ConfigurationError(f"HISTORY_WINDOW must be an integer, got {raw!r}") from None
    if window <= 0:
        raise ConfigurationError(f"HISTORY_WINDOW must be positive, got {window}")
    return window


def load_settings(environ=None) -> Settings:
    """Read and validate required settings from the environment.

    Raises ConfigurationError naming every missing variable at once, or for
    an invalid value (window, bootstrap policy, store descriptor).
    """
    env = os.environ if environ is None else environ
    values = {name: env.get(name, "").strip() for name in _REQUIRED}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    raw_policy = env.get("BOOTSTRAP_POLICY", "").strip().lower() or BootstrapPolicy.NOTIFY_ALL.value
    try:
        policy = BootstrapPolicy(raw_policy)
    except ValueError:
        choices = ", ".join(p.value for p in BootstrapPolicy)
        raise ConfigurationError(f"BOOTSTRAP_POLICY must be one of {choices}, got {raw_policy!r}") from None

    # Relative store paths are anchored at the project root, not the cwd
    try:
        store_url = resolve_descriptor(values["STORE_URL"], PROJECT_ROOT)
    except StoreError as e:
        raise ConfigurationError(f"STORE_URL is not usable: {e.args[0]}") from e

    return Settings(
        loyverse_email=values["LOYVERSE_EMAIL"],
        loyverse_password=values["LOYVERSE_PASSWORD"],
        smtp_user=values["SMTP_USER"],
        smtp_password=values["SMTP_PASSWORD"],
        email_from=env.get("EMAIL_FROM", "").strip() or values["SMTP_USER"],
        alert_email=values["ALERT_EMAIL"],
        store_url=store_url,
        history_window=_parse_window(env.get("HISTORY_WINDOW", "")),
        bootstrap_policy=policy,
    )
