"""
Quick Account Creation
Run from project root: python create_initial_users.py
Creates the first office administrator and, optionally, a driver.
"""
from app import create_app
from extensions import db
from models.management_codes import ManagementCode
from models.users import Administrator, Driver
from blueprints.auth.forms import validate_password_strength
import getpass


def _choose_management_code():
    codes = ManagementCode.query.filter_by(is_active=True).order_by(ManagementCode.id).all()
    if not codes:
        name = input("Organisation name (creates a management code): ").strip()
        code = ManagementCode(organization_name=name)
        db.session.add(code)
        db.session.flush()
        return code
    if len(codes) == 1:
        return codes[0]
    for c in codes:
        print(f"  [{c.id}] {c.code} - {c.organization_name}")
    selected = int(input("Management code id: ").strip())
    return next(c for c in codes if c.id == selected)


def create_initial_users():
    """Create an administrator account and an optional first driver"""
    app = create_app()

    with app.app_context():
        # Check if administrators already exist
        existing = Administrator.query.count()
        if existing > 0:
            print(f"⚠️  {existing} administrator(s) already exist!")
            existing_emails = [a.email for a in Administrator.query.all()]
            print(f"Existing administrators: {', '.join(existing_emails)}")
            response = input("\nCreate another administrator? (y/n): ")
            if response.lower() != 'y':
                return

        management_code = _choose_management_code()

        print("\n=== Create Administrator ===")
        print("\n🔒 Password Requirements:")
        print("   - At least 10 characters")
        print("   - Include uppercase and lowercase letters")
        print("   - Include at least one number")
        print("   - Include at least one special character (!@#$%^&*(),.?\":{}|<>)")
        print()

        email = input("Email: ").strip().lower()
        name = input("Full Name: ").strip()

        # Password with validation
        while True:
            password = getpass.getpass("Password: ").strip()
            is_valid, error_msg = validate_password_strength(password)
            if is_valid:
                password_confirm = getpass.getpass("Confirm Password: ").strip()
                if password == password_confirm:
                    break
                else:
                    print("❌ Passwords don't match. Try again.\n")
            else:
                print(f"❌ {error_msg}\n")

        admin = Administrator(email=email, name=name, is_active=True,
                              management_code_id=management_code.id)
        admin.set_password(password)
        db.session.add(admin)

        driver = None
        if input("\nCreate a driver as well? (y/n): ").lower() == 'y':
            employee_no = input("Employee No: ").strip()
            driver_name = input("Full Name: ").strip()
            pin_length = app.config['DRIVER_PIN_LENGTH']
            while True:
                pin = getpass.getpass(f"PIN ({pin_length} digits): ").strip()
                if pin.isdigit() and len(pin) == pin_length:
                    break
                print(f"❌ PIN must be exactly {pin_length} digits.\n")
            driver = Driver(employee_no=employee_no, name=driver_name,
                            management_code_id=management_code.id)
            driver.set_pin(pin)
            db.session.add(driver)

        # Save
        try:
            db.session.commit()
            print(f"\n✅ Accounts created under management code {management_code.code}")
            print(f"   - Administrator {name} ({email})")
            if driver:
                print(f"   - Driver {driver.name} ({driver.employee_no})")
            print("\n🔒 Log in with POST http://127.0.0.1:5000/login")
        except Exception as e:
            db.session.rollback()
            print(f"\n❌ Error: {e}")


if __name__ == '__main__':
    create_initial_users()
