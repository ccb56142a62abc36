"""Parsing of the credentials Conan clients send."""
import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional

from redirectory.errors import BadRequestError

_BEARER = re.compile(r"Bearer (.+)")
_BASIC = re.compile(r"Basic (.+)")
_USERPASS = re.compile(r"([^:]+):(.+)", re.DOTALL)


@dataclass(frozen=True)
class Credentials:
    """The Conan user name and the GitHub token that acts for them."""
    user: str
    auth: str


def parse_basic(header: Optional[str]) -> str:
    """Return the opaque token of a `Basic` Authorization header."""
    if not header:
        raise BadRequestError("Missing header: Authorization")
    match = _BASIC.fullmatch(header)
    if not match:
        raise BadRequestError("Malformed header: Authorization")
    return match.group(1)


def parse_bearer(header: Optional[str]) -> Credentials:
    """
    Decode `Bearer base64(user:token)`.

    The bearer value is whatever `users/authenticate` handed back, i.e. the
    client's Basic credential.
    """
    if not header:
        raise BadRequestError("Missing header: Authorization")
    match = _BEARER.fullmatch(header)
    if not match:
        raise BadRequestError("Malformed header: Authorization")
    try:
        userpass = base64.b64decode(match.group(1), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise BadRequestError("Malformed header: Authorization")
    credentials = _USERPASS.fullmatch(userpass)
    if not credentials:
        raise BadRequestError("Malformed header: Authorization")
    return Credentials(user=credentials.group(1), auth=credentials.group(2))
