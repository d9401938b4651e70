"""Create the initial admin account: python -m leadhub.create_admin"""
import os

from leadhub.core.database import SessionLocal
from leadhub.services import auth_service

ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "Admin12345!")
ADMIN_NAME = os.environ.get("ADMIN_NAME", "Administrator")


def main():
    db = SessionLocal()
    try:
        if auth_service.get_user_by_email(db, ADMIN_EMAIL):
            print(f"Already exists: {ADMIN_EMAIL}")
            return

        auth_service.create_user(
            db,
            email=ADMIN_EMAIL,
            password=ADMIN_PASSWORD,
            name=ADMIN_NAME,
            role="admin",
            status="active",
            verified=True,
        )
        print(f"Admin created: email={ADMIN_EMAIL}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
