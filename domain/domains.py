"""
Domain: canonical registrable domains.

Every downstream aggregate (attributed domains, timeline entries, billing line
items) is keyed by the value returned from ``canonicalize_domain``. The function
is pure and total: any input maps to the same output on every call, and
re-canonicalizing a canonical value returns it unchanged.

Rules:
- Lowercase and trim.
- Strip an ``http://``/``https://`` scheme, path, query, fragment, port and a
  leading ``www.``. An email address is reduced to its host part.
- Fewer than 3 labels: returned as-is.
- Otherwise keep the last three labels when the last two form a known compound
  suffix (``co.uk``, ``com.au``, ...), else keep the last two.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Optional

COMPOUND_SUFFIXES: FrozenSet[str] = frozenset(
    {
        "co.uk", "co.jp", "co.nz", "co.za", "co.in", "co.kr",
        "com.au", "com.br", "com.mx", "com.cn", "com.sg", "com.hk",
        "org.uk", "org.au", "net.au", "gov.uk", "ac.uk",
    }
)

# Free-mail and ISP providers. A shared provider says nothing about which
# company an address belongs to, so soft (same-domain) matching skips them.
PERSONAL_EMAIL_DOMAINS: FrozenSet[str] = frozenset(
    {
        # Major providers
        "gmail.com", "googlemail.com", "yahoo.com", "hotmail.com", "outlook.com",
        "live.com", "aol.com", "icloud.com", "me.com", "mac.com", "msn.com",
        # Privacy-focused
        "protonmail.com", "proton.me", "tutanota.com", "pm.me", "hey.com",
        "fastmail.com", "mailbox.org", "runbox.com", "posteo.de", "posteo.net",
        # Other international
        "zoho.com", "mail.com", "gmx.com", "gmx.net", "gmx.de", "web.de",
        "yandex.com", "yandex.ru", "mail.ru", "inbox.com", "qq.com", "163.com",
        "yahoo.co.uk", "hotmail.co.uk", "btinternet.com",
        # ISP email
        "comcast.net", "verizon.net", "att.net", "sbcglobal.net", "cox.net",
        "charter.net", "earthlink.net",
    }
)

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")


def canonicalize_domain(value: Optional[str]) -> Optional[str]:
    """
    Reduce a URL, email address or hostname to its root registrable domain.

    Returns None for empty input or input without a usable host.

    Example:
        canonicalize_domain("https://www.app.acme.co.uk/pricing")  # "acme.co.uk"
        canonicalize_domain("Jane@Mail.Acme.com")                  # "acme.com"
    """

    if not value:
        return None

    text = value.strip().lower()
    if "@" in text:
        text = text.rsplit("@", 1)[1]

    text = _SCHEME_RE.sub("", text)
    for separator in ("/", "?", "#"):
        text = text.split(separator, 1)[0]
    text = text.split(":", 1)[0]

    labels = [label for label in text.split(".") if label]
    if not labels:
        return None

    # "www." is dropped only while a registrable name remains after it.
    if labels[0] == "www" and len(labels) > 2 and ".".join(labels[1:]) not in COMPOUND_SUFFIXES:
        labels = labels[1:]

    if len(labels) < 3:
        return ".".join(labels)

    if ".".join(labels[-2:]) in COMPOUND_SUFFIXES:
        return ".".join(labels[-3:])
    return ".".join(labels[-2:])


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trimmed, lowercased address, or None if it is not a single-``@`` address."""

    if not email:
        return None
    text = email.strip().lower()
    local, sep, host = text.partition("@")
    if not sep or not local or not host or "@" in host:
        return None
    return text


def domain_from_email(email: Optional[str]) -> Optional[str]:
    """Canonical domain of an email address (None if the address is unparsable)."""

    normalized = normalize_email(email)
    if normalized is None:
        return None
    return canonicalize_domain(normalized.split("@", 1)[1])


def is_personal_domain(
    domain: Optional[str],
    personal_domains: FrozenSet[str] = PERSONAL_EMAIL_DOMAINS,
) -> bool:
    """True if ``domain`` (canonicalized) is a free-mail or ISP provider."""

    canonical = canonicalize_domain(domain)
    if canonical is None:
        return False
    return canonical in personal_domains


__all__ = [
    "COMPOUND_SUFFIXES",
    "PERSONAL_EMAIL_DOMAINS",
    "canonicalize_domain",
    "normalize_email",
    "domain_from_email",
    "is_personal_domain",
]
