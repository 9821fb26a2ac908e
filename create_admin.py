#!/usr/bin/env python3
"""
Admin Account Bootstrap
Creates the first CMS admin account directly in the content store.
Further admins are created from the dashboard once signed in.
"""
import asyncio
import getpass

from portfolio_cms.config import settings
from portfolio_cms.database import close_db, init_db
from portfolio_cms.dependencies import build_context


async def create_admin(email: str, password: str) -> bool:
    """Create the account through the auth service; returns True on success."""
    await init_db()
    try:
        context = build_context(settings)
        result = await context.auth.sign_up(email, password)
    finally:
        await close_db()

    if not result.ok:
        print(f"\n❌ Error: {result.error.message}")
        return False

    print(f"\n✅ Admin account created for {result.data['email']}")
    return True


def main():
    """Prompt for credentials and create the account."""
    print("=" * 60)
    print("CMS Admin Account Setup")
    print("=" * 60)
    print()

    if settings.USE_IN_MEMORY_BACKENDS or not settings.DATABASE_URL:
        print("❌ Error: DATABASE_URL must point at the CMS database")
        return

    email = input("Admin email: ").strip()
    if not email:
        print("\n❌ Error: Email cannot be empty")
        return

    # Get password securely (won't echo to screen)
    password = getpass.getpass("Admin password: ")

    if len(password) < settings.MIN_PASSWORD_LENGTH:
        print(f"\n❌ Error: Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        return

    password_confirm = getpass.getpass("Confirm password: ")

    if password != password_confirm:
        print("\n❌ Error: Passwords do not match")
        return

    print("\n⏳ Creating account (this may take a moment)...")
    asyncio.run(create_admin(email, password))


if __name__ == "__main__":
    main()
