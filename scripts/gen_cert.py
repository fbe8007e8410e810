"""Generate a self-signed PKCS#12 certificate bundle for TLS test sessions."""

import sys
import argparse

from tcpconsole.crypto.pki import generate_self_signed_pfx, get_cert_cn


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Generate a self-signed PKCS#12 (.pfx) bundle"
    )
    parser.add_argument(
        "--cn",
        default="localhost",
        help="Common Name for certificate (default: localhost)"
    )
    parser.add_argument(
        "--out",
        default="test.pfx",
        help="Output bundle path (default: test.pfx)"
    )
    parser.add_argument(
        "--password",
        default="password",
        help="Bundle password (default: password)"
    )
    parser.add_argument(
        "--days",
        type=int,
        default=365,
        help="Validity period in days (default: 365)"
    )

    args = parser.parse_args()

    try:
        print(f"[*] Creating self-signed certificate for CN={args.cn}...")
        cert = generate_self_signed_pfx(args.out, args.password, args.cn, args.days)
        print("[+] Certificate bundle written successfully!")
        print(f"    Bundle: {args.out}")
        print(f"    CN: {get_cert_cn(cert)}")
        print(f"    Valid for {args.days} days")
    except Exception as e:
        print(f"[-] Error: {e}", file=sys.stderr)
        sys.exit(1)
