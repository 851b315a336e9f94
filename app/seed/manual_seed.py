import os
import sys

# Ensure backend directory is in python path
sys.path.append(os.path.join(os.path.dirname(__file__), '../../'))

from app.core.config import settings
from app.database import Base, engine
from app.models import *
from app.seed.seed_company import seed_company

def main():
    print("WARNING: This script will seed the database with a demo company.")
    print(f"Target Environment: {settings.environment}")
    print(f"Database: {settings.database_url.split('@')[-1] if settings.database_url else 'Unknown'}")

    confirm = input("Are you sure you want to proceed? (yes/no): ")
    if confirm.lower() != "yes":
        print("Aborted.")
        return

    try:
        print("Ensuring tables exist...")
        Base.metadata.create_all(bind=engine)
        print("Seeding demo company...")
        company = seed_company()
        print(f"✅ Seeding completed successfully ({company.id}).")
    except Exception as e:
        print(f"❌ Seeding failed: {str(e)}")
        sys.exit(1)

if __name__ == "__main__":
    main()
