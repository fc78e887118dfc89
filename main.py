"""Command-line interface for the user CRUD service."""

from __future__ import annotations
import argparse
import logging
import sys
from dataclasses import replace
from getpass import getpass
from pathlib import Path
from typing import Sequence

import httpx

from usercrud.config import Settings, load_settings
from usercrud.database import Database
from usercrud.users import InvalidUserIdError, UserService

logger = logging.getLogger("usercrud.main")

_DEFAULT_SERVICE_URL = "http://127.0.0.1:8000"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User CRUD service utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: USERCRUD_CONFIG or config/usercrud.yaml)",
    )
    # Lets --config also follow the subcommand; SUPPRESS keeps a value given
    # before the subcommand from being reset.
    config_parent = argparse.ArgumentParser(add_help=False)
    config_parent.add_argument("--config", default=argparse.SUPPRESS, help="Path to a YAML configuration file")

    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the user database", parents=[config_parent])

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API", parents=[config_parent])
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the API")

    admin_parser = subparsers.add_parser(
        "admin", help="Launch the interactive administration console", parents=[config_parent]
    )
    admin_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]

    known_commands = {"serve", "admin", "init-db"}
    if not args_list:
        args_list = ["serve"]
    elif not any(arg in known_commands for arg in args_list) and not any(
        flag in args_list for flag in ("-h", "--help")
    ):
        args_list = _insert_default_command(args_list)

    return parser.parse_args(args_list)


def _insert_default_command(args_list: list[str]) -> list[str]:
    """Place ``serve`` after any global ``--config`` option."""

    if args_list[0] == "--config" and len(args_list) >= 2:
        return [*args_list[:2], "serve", *args_list[2:]]
    if args_list[0].startswith("--config="):
        return [args_list[0], "serve", *args_list[1:]]
    return ["serve", *args_list]


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, database: Database) -> None:
    from usercrud.application import create_application
    import uvicorn

    logger.info("Starting user API on http://%s:%s", settings.host, settings.port)

    app = create_application(settings=settings, database=database)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def _run_admin_cli(
    database: Database,
    *,
    service_url: str | None = None,
    api_tokens: Sequence[str] = (),
) -> None:
    """Provide an interactive management console for administrators."""

    users = UserService(database)
    base_url = service_url or _DEFAULT_SERVICE_URL

    print("User Service Administration Console")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List all users")
            print("  2) Add a new user")
            print("  3) Delete a user")
            print("  4) Check running service")
            print("  5) Exit")

            choice = input("Enter choice [1-5]: ").strip()

            if choice == "1":
                _list_users(users)
            elif choice == "2":
                _add_user(users)
            elif choice == "3":
                _delete_user(users)
            elif choice == "4":
                _check_service(base_url, api_tokens=api_tokens)
            elif choice == "5":
                print("Goodbye!")
                return
            else:
                print("Invalid selection. Please choose a number from the menu.\n")

            print()
    except KeyboardInterrupt:
        print("\nExiting administration console.")


def _list_users(users: UserService) -> None:
    records = users.list_users()
    if not records:
        print("No users are currently registered.")
        return

    print(f"{len(records)} user(s) found:")
    print(f"{'ID':<36}  {'Username':<20}  {'Email':<32}  Created")
    print("-" * 110)
    for user in records:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{str(user.id):<36}  {user.username:<20}  {user.email:<32}  {created}")


def _add_user(users: UserService) -> None:
    print("\nCreate a new user (leave the username blank to cancel).")
    username = input("Username: ").strip()
    if not username:
        print("User creation cancelled.")
        return

    email = input("Email address: ").strip()
    if not email:
        print("An email address is required.")
        return

    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.")
        return

    user_id = users.create_user(username, email, password)
    print(f"Created user {user_id}: {username} <{email}>")


def _delete_user(users: UserService) -> None:
    raw_id = input("User ID to delete: ").strip()
    if not raw_id:
        print("Deletion cancelled.")
        return

    try:
        deleted = users.delete_by_id(raw_id)
    except InvalidUserIdError as exc:
        print(f"Failed to delete user: {exc}")
        return

    if deleted:
        print(f"Deleted user {raw_id}.")
    else:
        print(f"No user with id {raw_id} exists.")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass("Password (min 8 characters): ")
        if len(password) < 8:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _check_service(base_url: str, *, api_tokens: Sequence[str] = ()) -> None:
    root = base_url.rstrip("/")
    headers = {"Authorization": f"Bearer {api_tokens[0]}"} if api_tokens else {}

    try:
        health = httpx.get(root + "/healthz", timeout=10.0)
        listing = httpx.get(root + "/users", headers=headers, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact user service: {exc}")
        return

    if health.status_code != 200:
        print(f"Health check responded with {health.status_code}: {health.text.strip()}")
        return
    if listing.status_code in (401, 403):
        print("Authentication failed when listing users. Verify the configured API tokens.")
        return
    if listing.status_code != 200:
        print(f"Service responded with {listing.status_code}: {listing.text.strip()}")
        return

    try:
        payload = listing.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return

    print(f"Service at {root} is healthy and reports {len(payload)} user(s).")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = load_settings(Path(args.config) if args.config else None)
    if args.command == "serve":
        overrides = {}
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port
        if overrides:
            settings = replace(settings, **overrides)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database)
    elif args.command == "admin":
        _run_admin_cli(
            database,
            service_url=args.service_url,
            api_tokens=settings.api_tokens,
        )
    elif args.command == "init-db":
        print(f"Database initialisation complete ({database.count()} user(s) stored).")


if __name__ == "__main__":
    main()
