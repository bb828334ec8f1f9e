"""
Generate the RSA keypair used to sign access and refresh tokens.
Run once before starting the app: python scripts/generate_keys.py

Writes JWT_PRIVATE_KEY_PATH and JWT_PUBLIC_KEY_PATH (keys/ by default).
Existing keys are kept unless --force is given.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from nearby.config import settings


def generate_keypair(key_size: int = 2048):
    """Return (private_pem, public_pem) as strings"""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


def main():
    parser = argparse.ArgumentParser(description="Generate JWT signing keys")
    parser.add_argument("--force", action="store_true", help="overwrite existing keys")
    parser.add_argument("--bits", type=int, default=2048)
    args = parser.parse_args()

    private_path = Path(settings.get_private_key_path())
    public_path = Path(settings.get_public_key_path())
    if private_path.exists() and not args.force:
        print(f"Key already exists at {private_path}. Use --force to replace it.")
        sys.exit(1)

    private_pem, public_pem = generate_keypair(args.bits)
    private_path.parent.mkdir(parents=True, exist_ok=True)
    public_path.parent.mkdir(parents=True, exist_ok=True)
    private_path.write_text(private_pem, encoding="utf-8")
    private_path.chmod(0o600)
    public_path.write_text(public_pem, encoding="utf-8")
    print(f"Wrote {private_path} and {public_path}")


if __name__ == "__main__":
    main()
