"""Seed database with demo users and materials."""
from veroscale.database import SessionLocal
from veroscale.models import Material, User
from veroscale.auth import get_password_hash


def seed():
    """Seed database with demo data."""
    db = SessionLocal()

    try:
        if db.query(User).first():
            print("Database already seeded, skipping.")
            return

        # Create users (one per role)
        users_data = [
            {
                'email': 'admin@veroscale.local',
                'password': 'admin12345',
                'name': 'Administrator',
                'role': 'admin'
            },
            {
                'email': 'manager@veroscale.local',
                'password': 'manager12345',
                'name': 'Warehouse Manager',
                'role': 'manager'
            },
            {
                'email': 'operator@veroscale.local',
                'password': 'operator12345',
                'name': 'Scale Operator',
                'role': 'operator'
            },
        ]

        for user_data in users_data:
            password = user_data.pop('password')
            db.add(User(password_hash=get_password_hash(password), **user_data))

        db.flush()

        # Material 1 is the default target for IoT readings (IOT_DEFAULT_MATERIAL_ID).
        materials_data = [
            {'name': 'Mixed Scrap', 'weight': 1.0, 'price_per_unit': None},
            {'name': 'Copper Wire', 'weight': 0.5, 'price_per_unit': 8.75},
            {'name': 'Aluminium Sheet', 'weight': 2.0, 'price_per_unit': 2.40},
            {'name': 'Steel Rod', 'weight': 5.0, 'price_per_unit': 0.90},
        ]

        for material_data in materials_data:
            db.add(Material(**material_data))

        db.commit()
        print("✅ Database seeded successfully!")
        print("\nDemo users:")
        print("  admin@veroscale.local/admin12345 (Administrator)")
        print("  manager@veroscale.local/manager12345 (Manager)")
        print("  operator@veroscale.local/operator12345 (Operator)")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
