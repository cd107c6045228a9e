#!/usr/bin/env python3
"""
Admin Password Hash Generator
Generates the bcrypt ADMIN_PASSWORD_HASH used to seed the admin account,
or checks a password against an existing hash with --verify.
"""
import argparse
import getpass
import sys

from wedding_invitation.utils.auth import hash_password, verify_password


def prompt_password(confirm: bool = True) -> str:
    """Read a password without echoing it. Returns "" on mismatch or empty input."""
    password = getpass.getpass("Enter admin password: ")
    if not password:
        print("\nError: Password cannot be empty")
        return ""

    if confirm and password != getpass.getpass("Confirm password: "):
        print("\nError: Passwords do not match")
        return ""

    return password


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate or check the admin password hash.")
    parser.add_argument("--verify", metavar="HASH", help="check a password against this bcrypt hash")
    args = parser.parse_args()

    print("=" * 60)
    print("Wedding Invitation Admin Password Hash")
    print("=" * 60)
    print()

    if args.verify:
        password = prompt_password(confirm=False)
        if not password:
            return 1
        if verify_password(password, args.verify):
            print("\nPassword matches the hash")
            return 0
        print("\nPassword does NOT match the hash")
        return 1

    print("Copy the output to your .env file as ADMIN_PASSWORD_HASH.")
    print("It is only used when the admin account is first created.")
    print()

    password = prompt_password()
    if not password:
        return 1

    print(f"\nADMIN_PASSWORD_HASH={hash_password(password)}")
    print()
    print("Keep this hash secret and never commit it to version control!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
