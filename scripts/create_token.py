#!/usr/bin/env python3
"""Script to issue bearer tokens for the Blog API.

Signs a token with the same JWT_SECRET the server uses. Useful for local
development and for exercising protected endpoints with curl.

Usage:
    export JWT_SECRET="..."

    # Token for a regular user
    python scripts/create_token.py --user-id 42 --username alice

    # Token for an admin
    python scripts/create_token.py --user-id 1 --username root --role admin
"""

from __future__ import annotations

import argparse
import sys

from blog_api.auth import CredentialCodec
from blog_api.config import get_auth_config
from blog_api.exceptions import ConfigurationError
from blog_api.users import UserRecord


def create_token(user_id: str, username: str, role: str | None) -> None:
    """Issue a token and print it with a usage example.

    Args:
        user_id: Subject id embedded in the token.
        username: Display name embedded in the token.
        role: Optional role (e.g. "admin").
    """
    try:
        auth_config = get_auth_config()
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        print()
        print("Set the signing secret used by the server:")
        print('  export JWT_SECRET="..."')
        sys.exit(1)

    codec = CredentialCodec(
        auth_config.jwt_secret,
        ttl_seconds=auth_config.token_ttl_seconds,
        algorithm=auth_config.jwt_algorithm,
    )
    user = UserRecord(id=user_id, username=username, email="", role=role)
    token = codec.issue(user)
    claim = codec.verify(token)

    # Display results
    print()
    print("=" * 60)
    print("  TOKEN ISSUED")
    print("=" * 60)
    print()
    print(f"  User ID:   {claim.subject_id}")
    print(f"  Username:  {claim.display_name}")
    print(f"  Role:      {claim.role or '(none)'}")
    print(f"  Expires:   {claim.expires_at.isoformat()}")
    print()
    print("-" * 60)
    print("  BEARER TOKEN:")
    print("-" * 60)
    print()
    print(f"  {token}")
    print()
    print("-" * 60)
    print("  Usage example:")
    print("-" * 60)
    print()
    print(f'  curl -H "Authorization: Bearer {token}" \\')
    print("       http://localhost:5000/api/auth/me")
    print()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Issue bearer tokens for the Blog API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --user-id 42 --username alice
  %(prog)s --user-id 1 --username root --role admin
        """,
    )

    parser.add_argument("--user-id", required=True, help="Subject id for the token")
    parser.add_argument("--username", required=True, help="Display name for the token")
    parser.add_argument("--role", default=None, help="Optional role (e.g. admin)")

    args = parser.parse_args()
    create_token(args.user_id, args.username, args.role)


if __name__ == "__main__":
    main()
