"""HS256 capability tokens authorising one upload of one file of one size."""
import base64
import hmac
import json
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Callable, Dict, Optional

from redirectory.errors import InvalidCapabilityError

SECONDS_PER_MINUTE = 60
_HEADER = {"alg": "HS256", "typ": "JWT"}


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _encode_json(value: Dict[str, Any]) -> str:
    return _b64url(json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8"))


@dataclass(frozen=True)
class UploadCapability:
    resource_path: str
    username: str
    filesize: int
    exp: int


class CapabilityTokenIssuer:
    """
    Signs and verifies upload capabilities with a shared secret.

    Claims are exactly {resource_path, username, filesize, exp}; there is no
    issued-at claim, so the same inputs always produce the same token.
    """

    def __init__(self, secret: str, ttl_minutes: int = 30, clock: Callable[[], float] = time.time):
        self._secret = secret.encode("utf-8")
        self.ttl_seconds = ttl_minutes * SECONDS_PER_MINUTE
        self.clock = clock

    def _sign(self, signing_input: str) -> bytes:
        return hmac.new(self._secret, signing_input.encode("utf-8"), sha256).digest()

    def expiry(self) -> int:
        return int(self.clock()) + self.ttl_seconds

    def issue(self, resource_path: str, username: str, filesize: int, exp: Optional[int] = None) -> str:
        claims = {
            "resource_path": resource_path,
            "username": username,
            "filesize": filesize,
            "exp": self.expiry() if exp is None else exp,
        }
        signing_input = _encode_json(_HEADER) + "." + _encode_json(claims)
        return signing_input + "." + _b64url(self._sign(signing_input))

    def decode(self, token: str) -> UploadCapability:
        """Check the signature and expiry; return the claims."""
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except ValueError:
            raise InvalidCapabilityError("Malformed signature")
        try:
            signature = _b64url_decode(sig_b64)
            header = json.loads(_b64url_decode(header_b64))
            payload = json.loads(_b64url_decode(payload_b64))
        except ValueError:
            raise InvalidCapabilityError("Malformed signature")
        if not isinstance(header, dict) or not isinstance(payload, dict):
            raise InvalidCapabilityError("Malformed signature")
        if header.get("alg") != "HS256":
            raise InvalidCapabilityError("Unsupported signature algorithm")
        if not hmac.compare_digest(self._sign(header_b64 + "." + payload_b64), signature):
            raise InvalidCapabilityError("Invalid signature")
        try:
            capability = UploadCapability(
                resource_path=str(payload["resource_path"]),
                username=str(payload["username"]),
                filesize=int(payload["filesize"]),
                exp=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError):
            raise InvalidCapabilityError("Incomplete signature claims")
        if self.clock() >= capability.exp:
            raise InvalidCapabilityError("Signature expired")
        return capability

    def verify(self, token: str, resource_path: str, username: str, filesize: int) -> UploadCapability:
        """
        Accept `token` only for this exact file path, user and size.

        The filename is the last component of `resource_path`, so a token for
        one file cannot be replayed for a sibling.
        """
        capability = self.decode(token)
        if capability.resource_path != resource_path:
            raise InvalidCapabilityError(f"Signature does not cover '{resource_path}'")
        if capability.username != username:
            raise InvalidCapabilityError(f"Signature was issued to another user than '{username}'")
        if capability.filesize != filesize:
            raise InvalidCapabilityError(
                f"Signature allows {capability.filesize} bytes, request declares {filesize}"
            )
        return capability
