"""Utility script to create an initial administrator in the database."""

from __future__ import annotations

import argparse
from getpass import getpass

from sqlalchemy.exc import SQLAlchemyError

from taskboard.domain.entities import ADMIN_ROLE_ALIAS, User
from taskboard.infrastructure.database import SessionLocal, initialize_database
from taskboard.infrastructure.repositories import RoleRepository, UserRepository
from taskboard.infrastructure.security import create_user_access_token, get_password_hash


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for user creation."""

    parser = argparse.ArgumentParser(
        description="Create an initial administrator for the task files API.",
    )
    parser.add_argument(
        "--name",
        default="Administrator",
        help="Full name of the user (default: Administrator)",
    )
    parser.add_argument(
        "--email",
        default="admin@example.com",
        help="E-mail address of the user (default: admin@example.com)",
    )
    parser.add_argument(
        "--password",
        default=None,
        help="Password of the user. Prompted for interactively when omitted.",
    )
    parser.add_argument(
        "--print-token",
        action="store_true",
        help="Print a bearer token for the created user.",
    )
    return parser.parse_args()


def main() -> None:
    """Create an administrator using the provided command line arguments."""

    args = parse_args()

    password = args.password or getpass("User password: ")
    if not password:
        raise SystemExit("No valid password was provided.")

    initialize_database()

    session = SessionLocal()
    try:
        users = UserRepository(session)
        if users.get_by_email(args.email) is not None:
            raise SystemExit(f"A user with e-mail {args.email} already exists.")
        role = RoleRepository(session).get_or_create(
            alias=ADMIN_ROLE_ALIAS, name="Administrator"
        )
        user = users.create(
            User(
                id=None,
                role=role,
                name=args.name,
                email=args.email,
                password=get_password_hash(password),
                created_at=None,
                is_active=True,
            )
        )
    except SQLAlchemyError as exc:
        session.rollback()
        raise SystemExit(f"Could not store the user in the database: {exc}") from exc
    else:
        print(
            "User created successfully:\n"
            f"  ID: {user.id}\n"
            f"  Name: {user.name}\n"
            f"  Email: {user.email}\n"
            f"  Role: {user.role.alias}"
        )
        if args.print_token:
            print(f"  Token: {create_user_access_token(user)}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
