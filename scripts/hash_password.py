#!/usr/bin/env python3
"""Print a password hash for an APP_USERS entry.

Usage:
  python scripts/hash_password.py --email owner@example.com --role admin
"""

import argparse
import getpass

from werkzeug.security import generate_password_hash

ROLES = ("admin", "member")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--role", default="member", choices=ROLES)
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if not password:
        print("Password must not be empty.")
        return
    if password != getpass.getpass("Repeat password: "):
        print("Passwords do not match.")
        return
    print(f"{args.email.strip().lower()}:{args.role}:{generate_password_hash(password)}")


if __name__ == "__main__":
    main()
