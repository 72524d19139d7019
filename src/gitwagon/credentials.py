"""Credentials shared by every clone and push of a session."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlparse, urlunparse

__all__ = ["Credentials", "resolve_credentials", "transport_url"]


@dataclass(frozen=True)
class Credentials:
    """Username and password for HTTP(S) remotes.

    A missing password is sent as the empty string.
    """
    username: str | None = None
    password: str | None = None

    def __repr__(self) -> str:
        masked = None if self.password is None else "***"
        return f"Credentials(username={self.username!r}, password={masked!r})"

    @property
    def anonymous(self) -> bool:
        return not self.username


def _netloc(username: str, password: str, parsed) -> str:
    netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return netloc


def transport_url(address: str, credentials: Credentials | None) -> str:
    """Return the URL to hand to the git transport for *address*.

    Credentials are injected into ``http://`` and ``https://`` URLs that do
    not already carry a username.  Other addresses (ssh, scp-like, local
    paths) are returned unchanged and authenticate on their own.
    """
    if credentials is None or credentials.anonymous:
        return address
    if not address.startswith(("https://", "http://")):
        return address
    parsed = urlparse(address)
    if parsed.username:
        return address
    netloc = _netloc(credentials.username, credentials.password or "", parsed)
    return urlunparse(parsed._replace(netloc=netloc))


def resolve_credentials(url: str) -> Credentials | None:
    """Look up credentials for an HTTPS *url* from the local git setup.

    Tries ``git credential fill`` first (works with any configured helper:
    osxkeychain, wincred, libsecret, ``gh auth setup-git``, etc.).  Falls
    back to ``gh auth token`` for GitHub hosts.  Returns ``None`` for
    non-HTTPS URLs or when nothing is found.  Credentials already embedded
    in the URL are returned as-is.
    """
    if not url.startswith("https://"):
        return None

    parsed = urlparse(url)
    if parsed.username:
        return Credentials(unquote(parsed.username), unquote(parsed.password or ""))

    try:
        stdin = f"protocol={parsed.scheme}\nhost={parsed.hostname}\n\n"
        proc = subprocess.run(
            ["git", "credential", "fill"],
            input=stdin, capture_output=True, text=True, timeout=5,
        )
        if proc.returncode == 0:
            creds = {}
            for line in proc.stdout.strip().splitlines():
                if "=" in line:
                    k, _, v = line.partition("=")
                    creds[k] = v
            username = creds.get("username")
            password = creds.get("password")
            if username and password:
                return Credentials(username, password)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    try:
        proc = subprocess.run(
            ["gh", "auth", "token", "--hostname", parsed.hostname],
            capture_output=True, text=True, timeout=5,
        )
        token = proc.stdout.strip()
        if proc.returncode == 0 and token:
            return Credentials("x-access-token", token)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    return None
