"""Admission gate for untrusted resource URLs.

`validate_url` must run before any network access; callers never fetch a URL
whose result is not `valid`. Validation is a pure function of its inputs and
never touches the network (no DNS resolution).
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple
from urllib.parse import SplitResult, quote, unquote, urljoin, urlsplit

from ..errors import ErrorKind
from .address_classifier import is_blocked, matching_rules
from .hostname import normalize_hostname
from .viewer_config import ALLOWED_SCHEMES, BLOCKED_PORTS, DEFAULT_PORTS, MAX_URL_LENGTH

logger = logging.getLogger(__name__)

MESSAGES = {
    ErrorKind.INVALID_INPUT: "URL is required.",
    ErrorKind.MALFORMED_URL: "Invalid URL format.",
    ErrorKind.UNSUPPORTED_SCHEME: "Only HTTP/HTTPS URLs are allowed.",
    ErrorKind.CREDENTIALS_PRESENT: "URLs with credentials are not allowed.",
    ErrorKind.BLOCKED_ADDRESS: "Local/private network URLs are not allowed.",
    ErrorKind.BLOCKED_PORT: "Access to this port is not allowed.",
}
TOO_LONG_MESSAGE = "URL is too long."

# Host code points a browser URL parser refuses outright.
_FORBIDDEN_HOST_CHARS = frozenset(" #%/:<>?@[\\]^|\t\n\r\x00")
_STRIP_CHARS = "".join(chr(c) for c in range(0x21))
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = "/?%:@!$&'()*+,;=-._~"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single `validate_url` call."""

    valid: bool
    error: Optional[str] = None
    normalized_url: Optional[str] = None
    reason: Optional[ErrorKind] = None


class _MalformedUrl(ValueError):
    pass


def _reject(kind: ErrorKind, raw: Any, message: Optional[str] = None) -> ValidationResult:
    logger.debug("rejected url %r: %s", raw if isinstance(raw, str) else type(raw).__name__, kind.value)
    return ValidationResult(valid=False, error=message or MESSAGES[kind], reason=kind)


def _parse_ipv4_number(part: str) -> int:
    if part.startswith(("0x", "0X")):
        digits = part[2:]
        if not digits:
            return 0
        if not re.fullmatch(r"[0-9a-fA-F]+", digits):
            raise _MalformedUrl(part)
        return int(digits, 16)
    if len(part) > 1 and part.startswith("0"):
        if not re.fullmatch(r"[0-7]+", part):
            raise _MalformedUrl(part)
        return int(part, 8)
    if not re.fullmatch(r"[0-9]+", part):
        raise _MalformedUrl(part)
    return int(part, 10)


def _ends_in_number(host: str) -> bool:
    parts = host.split(".")
    if parts[-1] == "" and len(parts) > 1:
        parts = parts[:-1]
    last = parts[-1]
    if last and re.fullmatch(r"[0-9]+", last):
        return True
    return bool(re.fullmatch(r"0[xX][0-9a-fA-F]*", last))


def _parse_ipv4_host(host: str) -> str:
    """Serialize a number-terminated host the way a browser URL parser does.

    Accepts the 1-4 part shorthand (`127.1`, `0x7f.1`, `2130706433`) where the
    last part fills the remaining bytes.
    """
    parts = host.split(".")
    if parts[-1] == "" and len(parts) > 1:
        parts = parts[:-1]
    if len(parts) > 4 or any(p == "" for p in parts):
        raise _MalformedUrl(host)
    numbers = [_parse_ipv4_number(p) for p in parts]
    if any(n > 255 for n in numbers[:-1]):
        raise _MalformedUrl(host)
    if numbers[-1] >= 256 ** (5 - len(numbers)):
        raise _MalformedUrl(host)
    value = numbers[-1]
    for idx, n in enumerate(numbers[:-1]):
        value += n * 256 ** (3 - idx)
    return str(ipaddress.IPv4Address(value))


def _canonical_host(raw_host: str) -> str:
    if raw_host.startswith("["):
        if not raw_host.endswith("]"):
            raise _MalformedUrl(raw_host)
        try:
            addr = ipaddress.IPv6Address(raw_host[1:-1])
        except ValueError as exc:
            raise _MalformedUrl(raw_host) from exc
        return f"[{addr.compressed}]"
    host = unquote(raw_host)
    if not host:
        raise _MalformedUrl(raw_host)
    if any(ch in _FORBIDDEN_HOST_CHARS for ch in host):
        raise _MalformedUrl(raw_host)
    try:
        host = host.encode("idna").decode("ascii").lower()
    except UnicodeError as exc:
        raise _MalformedUrl(raw_host) from exc
    if _ends_in_number(host):
        return _parse_ipv4_host(host)
    return host


def _split_authority(netloc: str) -> Tuple[str, str, Optional[str]]:
    """Return (userinfo, host, port) with IPv6 brackets kept on the host."""
    userinfo, sep, hostport = netloc.rpartition("@")
    if not sep:
        userinfo = ""
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise _MalformedUrl(netloc)
        host, rest = hostport[: end + 1], hostport[end + 1 :]
        if rest and not rest.startswith(":"):
            raise _MalformedUrl(netloc)
        port = rest[1:] if rest else None
    else:
        host, sep, port_text = hostport.partition(":")
        port = port_text if sep else None
    return userinfo, host, port


def _parse_port(port_text: Optional[str]) -> Optional[int]:
    if port_text is None or port_text == "":
        return None
    if not port_text.isdigit():
        raise _MalformedUrl(port_text)
    port = int(port_text)
    if port > 65535:
        raise _MalformedUrl(port_text)
    return port


def _resolve(raw: str, base_context: Optional[str]) -> SplitResult:
    cleaned = raw.strip(_STRIP_CHARS).replace("\t", "").replace("\n", "").replace("\r", "")
    resolved = urljoin(base_context, cleaned) if base_context else cleaned
    try:
        parts = urlsplit(resolved)
    except ValueError as exc:
        raise _MalformedUrl(resolved) from exc
    if not parts.scheme:
        raise _MalformedUrl(resolved)
    return parts


def validate_url(raw: Any, base_context: Optional[str] = None) -> ValidationResult:
    """Decide whether `raw` is safe to fetch.

    Relative input resolves against `base_context`. Checks short-circuit in a
    fixed order: input, length, parse, scheme, credentials, address, port.
    """
    if not raw or not isinstance(raw, str):
        return _reject(ErrorKind.INVALID_INPUT, raw)
    if len(raw) > MAX_URL_LENGTH:
        return _reject(ErrorKind.INVALID_INPUT, raw, TOO_LONG_MESSAGE)

    try:
        parts = _resolve(raw, base_context)
        scheme = parts.scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            return _reject(ErrorKind.UNSUPPORTED_SCHEME, raw)
        userinfo, raw_host, port_text = _split_authority(parts.netloc)
        host = _canonical_host(raw_host)
        port = _parse_port(port_text)
    except _MalformedUrl:
        return _reject(ErrorKind.MALFORMED_URL, raw)

    username, _, password = userinfo.partition(":")
    if username or password:
        return _reject(ErrorKind.CREDENTIALS_PRESENT, raw)

    normalized_host = normalize_hostname(host)
    if is_blocked(normalized_host):
        categories = sorted({rule.category for rule in matching_rules(normalized_host)})
        logger.debug("blocked host %s (%s)", normalized_host, ",".join(categories))
        return _reject(ErrorKind.BLOCKED_ADDRESS, raw)

    if port == DEFAULT_PORTS.get(scheme):
        port = None
    if port is not None and port in BLOCKED_PORTS:
        return _reject(ErrorKind.BLOCKED_PORT, raw)

    netloc = host if port is None else f"{host}:{port}"
    path = quote(parts.path, safe=_PATH_SAFE) or "/"
    href = f"{scheme}://{netloc}{path}"
    if parts.query:
        href += "?" + quote(parts.query, safe=_QUERY_SAFE)
    if parts.fragment:
        href += "#" + quote(parts.fragment, safe=_QUERY_SAFE + "#")
    return ValidationResult(valid=True, normalized_url=href)
