"""
Initialize database and create tables
Run this script once to set up your database
"""

from app import create_app
from extensions import db


def init_db(organization_name=None):
    """Initialize the database, optionally with a first management code"""
    app = create_app('development')

    with app.app_context():
        print("Creating database tables...")
        db.create_all()
        print("✓ Database tables created successfully!")
        print(f"Database location: {app.config['SQLALCHEMY_DATABASE_URI']}")

        # Print all tables
        print("\nTables created:")
        for table in db.metadata.sorted_tables:
            print(f"  - {table.name}")

        if organization_name:
            from models.management_codes import ManagementCode
            code = ManagementCode(organization_name=organization_name)
            db.session.add(code)
            db.session.commit()
            print(f"\nManagement code for {organization_name}: {code.code}")


if __name__ == '__main__':
    import sys
    init_db(sys.argv[1] if len(sys.argv) > 1 else None)
