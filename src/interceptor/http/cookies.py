"""
=============================================================================
COOKIES
=============================================================================

Structured cookie values passed between authorizers, handlers and monitors.

    Request                                 Response
    ───────                                 ────────
    Cookie: S=a1b2c3; theme=dark            Set-Cookie: S=a1b2c3; Path=/; HttpOnly
            ───┬───── ────┬─────                        ───┬──── ───────┬───────
               │          │                                │            │
          name=value  name=value                      name=value   attributes

A request carries many cookies on ONE header line. A response carries ONE
cookie per Set-Cookie line, which is why Set-Cookie is always added and
never replaced.

Cookies are carried opaquely: nothing here checks expiry, signatures or
session validity. That belongs to the authorizer that reads them.

=============================================================================
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from http.cookies import CookieError, SimpleCookie
from typing import List, Optional
import re

from .writer import format_http_date


# RFC 6265: cookie-name is an RFC 7230 token.
_TOKEN_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

# RFC 6265 cookie-octet, plus space and comma which are allowed when quoted.
_VALUE_PATTERN = re.compile(r'^[\x21\x23-\x2B\x2D-\x3A\x3C-\x5B\x5D-\x7E ,]*$')

_SAME_SITE_VALUES = ("Lax", "Strict", "None")


class NoCookieError(LookupError):
    """Raised when a request does not carry the named cookie."""

    def __init__(self, name: str = ""):
        super().__init__("named cookie not present")
        self.name = name


@dataclass
class Cookie:
    """
    An HTTP cookie.

    Attributes:
        name: Cookie name (an HTTP token).
        value: Cookie value.
        path: Path attribute, omitted when empty.
        domain: Domain attribute, omitted when empty.
        expires: Absolute expiry; serialized as an HTTP-date.
        max_age: 0 means "not set"; a negative value means "delete now"
                 and is sent as Max-Age=0.
        secure: Send only over HTTPS.
        http_only: Hide from client-side scripts.
        same_site: "Lax", "Strict", "None" or None to omit.
    """

    name: str
    value: str = ""
    path: str = ""
    domain: str = ""
    expires: Optional[datetime] = None
    max_age: int = 0
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None

    def to_header(self) -> str:
        """
        Serialize as a Set-Cookie header value.

        Returns:
            "name=value" followed by the attributes that are set, e.g.
            "S=a1b2c3; Path=/; Expires=Thu, 01 Jan 2026 12:00:00 GMT; HttpOnly"

        Raises:
            ValueError: If the name is not a token, the value contains
                        characters that cannot appear in a cookie, or
                        same_site is not a recognized mode.
        """
        if not _TOKEN_PATTERN.match(self.name or ""):
            raise ValueError(f"Invalid cookie name: {self.name!r}")
        if not _VALUE_PATTERN.match(self.value):
            raise ValueError(f"Invalid cookie value for {self.name}: {self.value!r}")

        value = self.value
        if " " in value or "," in value:
            value = f'"{value}"'

        parts = [f"{self.name}={value}"]

        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain.lstrip('.')}")
        if self.expires is not None:
            parts.append(f"Expires={format_http_date(_as_utc(self.expires))}")
        if self.max_age > 0:
            parts.append(f"Max-Age={self.max_age}")
        elif self.max_age < 0:
            parts.append("Max-Age=0")
        if self.http_only:
            parts.append("HttpOnly")
        if self.secure:
            parts.append("Secure")
        if self.same_site is not None:
            if self.same_site not in _SAME_SITE_VALUES:
                raise ValueError(f"Invalid SameSite mode: {self.same_site!r}")
            parts.append(f"SameSite={self.same_site}")

        return "; ".join(parts)

    def __str__(self) -> str:
        return self.to_header()


def parse_cookie_header(raw: str) -> List[Cookie]:
    """
    Parse a request ``Cookie`` header into Cookie objects.

    Only name and value are meaningful in a request header. Malformed
    input yields an empty list rather than an error; a request with a
    broken Cookie header simply has no cookies.

    Args:
        raw: The header value, e.g. "S=a1b2c3; theme=dark"

    Returns:
        Cookies in header order.
    """
    if not raw:
        return []

    jar = SimpleCookie()
    try:
        jar.load(raw)
    except CookieError:
        return []

    return [Cookie(name=name, value=morsel.value) for name, morsel in jar.items()]


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
