"""Issue a bearer token for the Event Registration API.

Usage:
    python create_token.py user-42
    python create_token.py admin-1 --role admin --days 365
"""
import argparse

from event_registration_api.app.core.security import Role, create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("user_id", help="value of the token's sub claim")
    parser.add_argument("--role", choices=[role.value for role in Role], default=Role.ATTENDEE.value)
    parser.add_argument("--days", type=int, default=1, help="token lifetime in days")
    args = parser.parse_args()
    token = create_access_token({"sub": args.user_id, "role": args.role}, expires_delta=args.days * 24 * 60 * 60)
    print(token)


if __name__ == "__main__":
    main()
