"""
Aether Seal Command Line Interface.

Provides commands for generating signing keys, fingerprinting and verifying
images, and issuing and checking certificates.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import httpx

from aetherseal.certificate import CertificateAuthority, CertificateService
from aetherseal.config import SealSettings
from aetherseal.exceptions import SealError
from aetherseal.keys import generate_identity
from aetherseal.ledger import HttpLedger
from aetherseal.phash import PerceptualHasher
from aetherseal.verifier import SealVerifier


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def _read_image(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate a new Ed25519 certificate signing key pair."""
    keys = generate_identity()

    private_key = keys.private_key_pem if args.pem else keys.private_key_jwk
    public_key = keys.public_key_pem if args.pem else keys.public_key_jwk

    if args.env:
        print(f"export SEAL_SIGNING_PRIVATE_KEY='{private_key}'")
        print(f"export SEAL_SIGNING_PUBLIC_KEY='{public_key}'")
    else:
        print("NEW CERTIFICATE SIGNING KEY\n")
        print(f"Key ID: {keys.key_id}")
        print("\n--- PRIVATE KEY (set as SEAL_SIGNING_PRIVATE_KEY) ---")
        print(private_key)
        print("\n--- PUBLIC KEY (set as SEAL_SIGNING_PUBLIC_KEY) ---")
        print(public_key)

    return 0


def cmd_hash(args: argparse.Namespace) -> int:
    """Print the perceptual fingerprint of an image."""
    try:
        data = _read_image(args.image)
    except OSError as e:
        print(f"Error reading image: {e}", file=sys.stderr)
        return 1

    fingerprint = PerceptualHasher().hash(data)
    if fingerprint.degraded:
        print("Warning: image could not be decoded, using byte digest", file=sys.stderr)
    print(fingerprint.hex)
    return 0


async def _verify(settings: SealSettings, data: bytes) -> dict:
    async with SealVerifier.from_settings(settings) as verifier:
        return await verifier.verify_response(data)


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify an image against the seal ledger."""
    try:
        data = _read_image(args.image)
    except OSError as e:
        print(f"Error reading image: {e}", file=sys.stderr)
        return 1

    try:
        response = asyncio.run(_verify(SealSettings.from_env(), data))
    except (SealError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(response, indent=2, ensure_ascii=False))
    else:
        print(f"Status:     {response['status'].upper()}")
        print(f"Confidence: {response['confidence']:.2f}")
        if response["sealId"]:
            print(f"Seal ID:    {response['sealId']}")
        if response["matchedByFallback"]:
            print(f"Similarity: {response['fallbackSimilarity']:.1f}% (perceptual match)")
        metadata = response["metadata"]
        if metadata:
            creator = metadata["creator"]
            print(f"Creator:    {creator['displayName'] or creator['userId']}")
            print(f"Profile:    {creator['profileUrl']}")
            print(f"Created:    {metadata['createdAt']}")

    return 0 if response["status"] == "authentic" else 2


async def _issue(settings: SealSettings, seal_id: str):
    ledger = HttpLedger(settings.api_key, base_url=settings.ledger_url, timeout=settings.http_timeout)
    service = CertificateService(profile_base_url=settings.profile_base_url)
    return await CertificateAuthority(service, ledger).issue_for_seal(seal_id)


def cmd_issue(args: argparse.Namespace) -> int:
    """Issue a signed certificate for a registered seal."""
    try:
        signed = asyncio.run(_issue(SealSettings.from_env(), args.seal_id))
    except (SealError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"Error resolving seal: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(signed.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(signed.jws)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Check a certificate token against the public key."""
    try:
        result = CertificateService().verify(args.token)
    except SealError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({
            "valid": result.valid,
            "certificate": result.certificate.to_dict() if result.certificate else None,
            "error": result.error,
        }, indent=2, ensure_ascii=False))
    elif result.valid:
        cert = result.certificate
        print("VALID")
        print(f"   Seal ID: {cert.seal_id}")
        print(f"   Creator: {cert.display_name or cert.user_id}")
        print(f"   Issued:  {cert.issued_at}")
    else:
        print(f"INVALID: {result.error}")

    return 0 if result.valid else 1


def cmd_public_key(args: argparse.Namespace) -> int:
    """Print the certificate public key as a JWK."""
    try:
        print(json.dumps(CertificateService().get_public_key_jwk(), indent=2))
    except SealError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='aetherseal',
        description='Aether Seal CLI - provenance verification for generated images'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    p_keygen = subparsers.add_parser('keygen', help='Generate a certificate signing key pair')
    p_keygen.add_argument('--pem', action='store_true', help='Output PEM instead of JWK')
    p_keygen.add_argument('--env', action='store_true', help='Output as environment variables')

    p_hash = subparsers.add_parser('hash', help='Print the perceptual fingerprint of an image')
    p_hash.add_argument('image', help='Path to the image')

    p_verify = subparsers.add_parser('verify', help='Verify an image')
    p_verify.add_argument('image', help='Path to the image')
    p_verify.add_argument('--json', action='store_true', help='Output as JSON')

    p_issue = subparsers.add_parser('issue', help='Issue a certificate for a seal id')
    p_issue.add_argument('seal_id', help='The seal id')
    p_issue.add_argument('--json', action='store_true', help='Output token and certificate as JSON')

    p_check = subparsers.add_parser('check', help='Check a certificate token')
    p_check.add_argument('token', help='The compact JWS token')
    p_check.add_argument('--json', action='store_true', help='Output as JSON')

    subparsers.add_parser('public-key', help='Print the public key (JWK)')

    args = parser.parse_args(argv)

    setup_logging(args.verbose if hasattr(args, 'verbose') else False)

    if args.command == 'keygen':
        return cmd_keygen(args)
    elif args.command == 'hash':
        return cmd_hash(args)
    elif args.command == 'verify':
        return cmd_verify(args)
    elif args.command == 'issue':
        return cmd_issue(args)
    elif args.command == 'check':
        return cmd_check(args)
    elif args.command == 'public-key':
        return cmd_public_key(args)
    else:
        parser.print_help()
        return 0


if __name__ == '__main__':
    sys.exit(main())
