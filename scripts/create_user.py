import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from usercrud.database import Database, resolve_database_path
from usercrud.users import UserService


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user record")
    parser.add_argument("username", help="Username for the new user")
    parser.add_argument("email", help="Email address for the new user")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to USERCRUD_DB_PATH or data/users.sqlite3)",
    )
    return parser.parse_args(argv)


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < 8:
            print("Password must be at least 8 characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main(argv=None) -> int:
    args = parse_args(argv)
    username = args.username.strip()
    email = args.email.strip()
    if not username or not email:
        print("Error: username and email must not be empty", file=sys.stderr)
        return 1

    password = prompt_for_password()

    db_env = args.db_path or os.getenv("USERCRUD_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    user_id = UserService(database).create_user(username, email, password)

    print(f"Created user {user_id}: {username} <{email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
