#!/usr/bin/env python3
"""
Generate a VAPID key pair for web push notifications.

Run once, then add the keys to your environment variables.
KEEP THE PRIVATE KEY SECRET - never commit it to version control!

Usage:
    python scripts/generate_vapid_keys.py [--subject mailto:ops@example.com]
"""

import argparse

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from app.core.vapid import b64url_encode, encode_public_key


def generate_key_pair() -> tuple[str, str]:
    """Return (public_key, private_key) as base64url strings."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_der = private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return encode_public_key(private_key), b64url_encode(private_der)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--subject", default="mailto:you@example.com", help="VAPID_SUBJECT value")
    args = parser.parse_args()

    public_key, private_key = generate_key_pair()

    print("\n" + "=" * 60)
    print("VAPID Keys Generated Successfully!")
    print("=" * 60)
    print("\nAdd these to your .env file:\n")
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    print(f"VAPID_SUBJECT={args.subject}")
    print("\n" + "=" * 60)
    print("IMPORTANT: Keep VAPID_PRIVATE_KEY secret.")
    print("Never commit it to version control.")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
