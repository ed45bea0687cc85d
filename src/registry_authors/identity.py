from __future__ import annotations

import re

NOREPLY_DOMAIN = "users.noreply.github.com"

# Optional numeric account id, then the login, e.g. 12345+octocat@users.noreply.github.com
_NOREPLY_RE = re.compile(r"^(?:\d+\+)?([^@]+)@" + re.escape(NOREPLY_DOMAIN) + "$")


def github_username_from_email(email: str) -> str | None:
    """
    Extract the GitHub username from GitHub noreply patterns:
      - username@users.noreply.github.com
      - 123456+username@users.noreply.github.com
    The username is returned as written; callers compare it case-insensitively.
    Returns None for any other address.
    """
    if not email:
        return None
    m = _NOREPLY_RE.match(email)
    if m is None:
        return None
    return m.group(1)


def identity_key(email: str) -> str:
    username = github_username_from_email(email)
    if username is not None:
        return username.lower()
    return email.lower()
