"""Shared utility functions used across the extractor and notifications."""

import re
from urllib.parse import urlparse


def clean_cell(raw) -> str:
    """Collapse whitespace in a scraped cell's innerText. None becomes ''."""
    if raw is None:
        return ""
    return re.sub(r'\s+', ' ', str(raw)).strip()


def mask_email(address: str) -> str:
    """Mask an email address for logging: jo***@example.com."""
    local, sep, domain = address.partition("@")
    if not sep:
        return "***"
    return local[:2] + "***@" + domain


def mask_url(url: str) -> str:
    """Hide the password in a database URL for logging."""
    password = urlparse(url).password
    if not password:
        return url
    return url.replace(f":{password}@", ":***@", 1)
