"""PKCS#12 bundles: load into an ssl.SSLContext, generate self-signed test bundles."""

import ipaddress
import os
import ssl
import tempfile
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID


class CertificateLoadError(Exception):
    """Raised when a certificate bundle cannot be read or decrypted."""
    pass


def load_pfx(pfx_path: str, password: Optional[str]) -> Tuple[object, x509.Certificate, List[x509.Certificate]]:
    """
    Load a PKCS#12 bundle.

    Args:
        pfx_path: path to the .pfx/.p12 file
        password: bundle password (None or empty for an unprotected bundle)

    Returns:
        (private_key, certificate, additional_certificates)

    Raises:
        CertificateLoadError if the file is missing, unreadable or the
        password is wrong
    """
    try:
        with open(pfx_path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise CertificateLoadError(f"Unable to read certificate file {pfx_path}: {e}")

    try:
        key, cert, extra = pkcs12.load_key_and_certificates(
            data,
            password.encode('utf-8') if password else None
        )
    except ValueError as e:
        raise CertificateLoadError(f"Unable to decrypt certificate file {pfx_path}: {e}")

    if key is None or cert is None:
        raise CertificateLoadError(f"Certificate file {pfx_path} has no private key or certificate")

    return key, cert, list(extra or [])


def get_cert_cn(cert: x509.Certificate) -> str:
    """
    Extract Common Name (CN) from certificate subject.

    Returns:
        CN value or empty string if not found
    """
    try:
        cn_attr = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        if cn_attr:
            return cn_attr[0].value
        return ""
    except Exception:
        return ""


def build_server_context(
    pfx_path: str,
    password: Optional[str],
    mutually_authenticate: bool = False,
    accept_invalid_certificates: bool = False
) -> ssl.SSLContext:
    """
    Build a server-side TLS context from a PKCS#12 bundle.

    The ssl module only loads key material from files, so the key and chain
    are written to a private temporary PEM file that is removed as soon as
    the context has read it.

    Args:
        pfx_path: path to the server's PKCS#12 bundle
        password: bundle password
        mutually_authenticate: require a client certificate
        accept_invalid_certificates: relax verification of client certificates

    Returns:
        configured ssl.SSLContext
    """
    key, cert, extra = load_pfx(pfx_path, password)

    chain_pem = b"".join(c.public_bytes(serialization.Encoding.PEM) for c in [cert] + extra)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)

    fd, pem_path = tempfile.mkstemp(suffix='.pem')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(key_pem + chain_pem)
        context.load_cert_chain(pem_path)
    except ssl.SSLError as e:
        raise CertificateLoadError(f"Unable to use certificate {get_cert_cn(cert)!r}: {e}")
    finally:
        os.remove(pem_path)

    if mutually_authenticate:
        context.verify_mode = ssl.CERT_REQUIRED
        context.load_default_certs(ssl.Purpose.CLIENT_AUTH)
        # Clients presenting the server's own test certificate are trusted
        context.load_verify_locations(cadata=chain_pem.decode('ascii'))
        if accept_invalid_certificates:
            context.verify_flags |= ssl.VERIFY_X509_PARTIAL_CHAIN
            context.verify_flags &= ~ssl.VERIFY_X509_STRICT
    else:
        context.verify_mode = ssl.CERT_NONE

    return context


def build_client_context(
    cert_path: Optional[str] = None,
    password: Optional[str] = None,
    accept_invalid_certificates: bool = True
) -> ssl.SSLContext:
    """
    Build a client-side TLS context, optionally presenting a PKCS#12 bundle.

    With accept_invalid_certificates the server's certificate is not
    verified, which is what a self-signed test bundle needs.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    if accept_invalid_certificates:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        context.load_default_certs(ssl.Purpose.SERVER_AUTH)

    if cert_path:
        key, cert, extra = load_pfx(cert_path, password)
        fd, pem_path = tempfile.mkstemp(suffix='.pem')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(key.private_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PrivateFormat.PKCS8,
                    encryption_algorithm=serialization.NoEncryption()
                ))
                for c in [cert] + extra:
                    f.write(c.public_bytes(serialization.Encoding.PEM))
            context.load_cert_chain(pem_path)
        finally:
            os.remove(pem_path)

    return context


def generate_self_signed_pfx(
    output_path: str,
    password: Optional[str],
    common_name: str = "localhost",
    valid_days: int = 365
) -> x509.Certificate:
    """
    Write a self-signed certificate and its key as a PKCS#12 bundle.

    Args:
        output_path: destination .pfx path
        password: bundle password (None or empty for no encryption)
        common_name: certificate CN, also added as a DNS SAN
        valid_days: validity period in days

    Returns:
        the generated certificate
    """
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048
    )

    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, u"TCP Console"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])

    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=valid_days))
        .add_extension(
            x509.BasicConstraints(ca=True, path_length=None),
            critical=True,
        )
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName(common_name),
                x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            ]),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )

    if password:
        encryption = serialization.BestAvailableEncryption(password.encode('utf-8'))
    else:
        encryption = serialization.NoEncryption()

    bundle = pkcs12.serialize_key_and_certificates(
        common_name.encode('utf-8'),
        private_key,
        cert,
        None,
        encryption
    )

    os.makedirs(os.path.dirname(output_path) if os.path.dirname(output_path) else ".", exist_ok=True)
    with open(output_path, 'wb') as f:
        f.write(bundle)

    return cert
