"""
Create a verified donor and a verified recipient (no email round trip required).
Use when Mailgun is not configured so you can log in with a password and try the post lifecycle.

Run from project root:
  python scripts/create_demo_users.py

Credentials are printed at the end.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from foodshare.database import SessionLocal
from foodshare.errors import DuplicateEmail
from foodshare.repositories.users import NewUser, UserRepository
from foodshare.services.auth import get_password_hash

DEMO_PASSWORD = "Password123!"
DEMO_USERS = (
    ("Demo Donor", "donor@foodshare.demo"),
    ("Demo Recipient", "recipient@foodshare.demo"),
)


def create_demo_users(db, password: str = DEMO_PASSWORD) -> list[str]:
    """Create the demo users that do not exist yet; returns the emails created."""
    users = UserRepository(db)
    created = []
    for name, email in DEMO_USERS:
        if users.find_by_email(email):
            print(f"Already exists: {email}")
            continue
        try:
            users.create(NewUser(name=name, email=email, hashed_password=get_password_hash(password), is_email_verified=True))
        except DuplicateEmail:
            print(f"Already exists: {email}")
            continue
        print(f"Created: {email}")
        created.append(email)
    return created


def main():
    db = SessionLocal()
    try:
        create_demo_users(db)
    finally:
        db.close()

    print("\n--- Demo credentials (POST /auth/login) ---")
    for _, email in DEMO_USERS:
        print(f"  {email} / {DEMO_PASSWORD}")


if __name__ == "__main__":
    main()
