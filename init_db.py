"""
Initialize database - create all tables and seed a first organization admin
Run this script to set up a development database for the first time

Usage:
    python init_db.py "Coastal Lodges" admin@example.com "Ada Admin"
"""
import asyncio
import sys

from sqlalchemy import select

from app.core.config import settings
from app.db.session import engine, get_db_session
from app.models import Base, Organization, User, UserRole
from app.services.auth_service import auth_service
from app.services.survey_service import kebab


async def init_database(org_name: str, admin_email: str, admin_name: str):
    """Create all database tables and the first admin"""
    print("Connecting to database...")
    print(f"Database URL: {settings.DATABASE_URL[:50]}...")

    async with engine.begin() as conn:
        print("Creating all tables...")
        await conn.run_sync(Base.metadata.create_all)

    async with get_db_session() as db:
        org = (await db.execute(
            select(Organization).where(Organization.slug == kebab(org_name))
        )).scalar_one_or_none()
        if not org:
            org = Organization(name=org_name, slug=kebab(org_name), is_active=True)
            db.add(org)
            await db.flush()
            print(f"Created organization {org.name} (id={org.id})")

        admin = (await db.execute(select(User).where(User.email == admin_email))).scalar_one_or_none()
        if not admin:
            admin = User(
                email=admin_email,
                full_name=admin_name,
                role=UserRole.ADMIN,
                organization_id=org.id,
                is_active=True,
            )
            db.add(admin)
            await db.flush()
            print(f"Created admin {admin.email} (id={admin.id})")

        await db.commit()
        print("\nBearer token for the admin:")
        print(auth_service.create_user_token(admin))

    await engine.dispose()
    print("\nDatabase initialized successfully!")


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    asyncio.run(init_database(sys.argv[1], sys.argv[2], sys.argv[3]))
