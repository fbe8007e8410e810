"""Certificate helpers for TLS-enabled servers and test clients."""

from .pki import (
    load_pfx,
    get_cert_cn,
    build_server_context,
    build_client_context,
    generate_self_signed_pfx,
    CertificateLoadError,
)

__all__ = [
    "load_pfx",
    "get_cert_cn",
    "build_server_context",
    "build_client_context",
    "generate_self_signed_pfx",
    "CertificateLoadError",
]
