# family_expenses/init_db.py
#
# python -m family_expenses.init_db [--with-demo-user]

import argparse
import sys

from dotenv import load_dotenv
from sqlalchemy import text

from . import crud
from .database import Base, make_engine, make_session_factory
from .errors import InvalidInput
from .settings import Settings


def seed_user(db, email, username, full_name, password, is_admin):
    existing = crud.get_user_by_login(db, email) or crud.get_user_by_login(db, username)
    if existing:
        print(f"= {username} already exists (id {existing.id})")
        return existing
    user = crud.create_user(db, email, username, full_name, password, is_admin=is_admin)
    print(f"+ created {username} <{email}> (id {user.id}, admin={is_admin})")
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create tables and seed the admin account")
    parser.add_argument("--with-demo-user", action="store_true", help="also create user@depenses.com / user123!")
    args = parser.parse_args(argv)

    load_dotenv()
    settings = Settings()

    try:
        engine = make_engine(settings.database_url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Connected to", engine.url.render_as_string(hide_password=True))

        Base.metadata.create_all(bind=engine)
        db = make_session_factory(engine)()
        try:
            seed_user(db, settings.admin_email, settings.admin_username, settings.admin_full_name,
                      settings.admin_password, is_admin=True)
            if args.with_demo_user:
                seed_user(db, "user@depenses.com", "user", "Utilisateur Test", "user123!", is_admin=False)
        finally:
            db.close()
    except InvalidInput as e:
        print("Failed to seed:", e)
        return 1
    except Exception as e:
        print("Failed to connect:", e)
        return 1

    print("🎉 Database ready")
    return 0


if __name__ == "__main__":
    sys.exit(main())
