# scripts/create_admin.py

import os
import sys
from getpass import getpass

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from werkzeug.security import generate_password_hash

from app import app
from troop_app.models import User


def create_admin():
    with app.app_context():
        username = input("Enter username: ").strip()
        email = input("Enter email: ").strip()

        if User.find_by_username(username):
            print("Error: Username already exists.")
            sys.exit(1)
        if User.query.filter_by(email=email).first():
            print("Error: Email already exists.")
            sys.exit(1)

        password = getpass("Enter password: ")
        if not password or password != getpass("Confirm password: "):
            print("Error: Passwords are empty or do not match.")
            sys.exit(1)

        admin_user, error = User.safe_create(
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
            is_active=True,
            is_super_admin=True,
        )
        if error:
            print(f"Error creating admin account: {error}")
            sys.exit(1)

        print("Super admin account created.")
        print(f"   Username: {admin_user.username}")
        print("Super admins may record, award and approve in every organization.")


if __name__ == "__main__":
    create_admin()
