"""Helper signatures: format_ip_port, decode_payload, encode_text, constant_time_compare."""

import hmac
from typing import Optional, Tuple, Union


def format_ip_port(addr: Tuple[str, int]) -> str:
    """Render a peer address tuple as an "ip:port" identity string."""
    return f"{addr[0]}:{addr[1]}"


def decode_payload(data: Optional[bytes]) -> str:
    """
    Decode a received payload as UTF-8 text.

    Empty or missing payloads render as an empty string. Undecodable bytes
    are replaced rather than raising.
    """
    if not data:
        return ""
    return data.decode('utf-8', errors='replace')


def encode_text(text: str) -> bytes:
    """Encode operator text as UTF-8 bytes for sending."""
    return text.encode('utf-8')


def constant_time_compare(a: Union[bytes, str], b: Union[bytes, str]) -> bool:
    """Constant-time comparison to prevent timing attacks."""
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)
