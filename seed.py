from roktodan import create_app, db, bcrypt
from roktodan.models.user import User, Donor, Volunteer, Admin

DEFAULT_PASSWORD = 'test1234'

ACCOUNTS = [
    ('admin@roktodan.org', 'Admin User', '01700000001', 'admin'),
    ('volunteer@roktodan.org', 'Rahim Uddin', '01800000002', 'volunteer'),
    ('donor1@roktodan.org', 'Karim Hossain', '01900000003', 'donor'),
    ('donor2@roktodan.org', 'Nusrat Jahan', '01600000004', 'donor'),
]

# Donor profiles around Dhaka
DONORS = {
    'donor1@roktodan.org': ('O+', 23.8103, 90.4125, 'Dhaka', 'Dhaka'),
    'donor2@roktodan.org': ('A-', 23.7465, 90.3760, 'Dhaka', 'Dhaka'),
}


def setup_test_data():
    app = create_app()
    with app.app_context():
        # Check if any users exist
        users = User.query.all()
        print(f"Found {len(users)} users in the database")

        if users:
            print("Existing users:")
            for user in users:
                print(f"- {user.email} ({user.role})")
            return

        print("Creating test users...")
        hashed_password = bcrypt.generate_password_hash(DEFAULT_PASSWORD).decode('utf-8')
        for email, name, phone, role in ACCOUNTS:
            user = User(email=email, password=hashed_password, full_name=name, phone=phone, role=role)
            db.session.add(user)
            db.session.flush()  # Get the user ID

            if role == 'admin':
                db.session.add(Admin(user_id=user.id, department='Operations'))
            elif role == 'volunteer':
                db.session.add(Volunteer(user_id=user.id, latitude=23.7808, longitude=90.2792,
                                         district='Dhaka', division='Dhaka'))
            else:
                blood_group, lat, lng, district, division = DONORS[email]
                db.session.add(Donor(user_id=user.id, blood_group=blood_group, latitude=lat,
                                     longitude=lng, district=district, division=division))

        db.session.commit()
        print("Test users created successfully!")
        for email, _, _, role in ACCOUNTS:
            print(f"- {email} ({role}) / {DEFAULT_PASSWORD}")


if __name__ == '__main__':
    setup_test_data()
