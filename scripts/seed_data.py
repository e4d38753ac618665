from dotenv import load_dotenv
load_dotenv()

from qrcheckin import create_app
from qrcheckin.utils.seed import seed_sample_data, SAMPLE_USERS

app = create_app()

with app.app_context():
    print("Seeding sample data...\n")

    created = seed_sample_data()

    print(f"✓ Users created:     {created['users']}")
    print(f"✓ Events created:    {created['events']}")
    print(f"✓ Attendees created: {created['attendees']}")

    print("\nSample logins:")
    for user in SAMPLE_USERS:
        print(f"  {user['role']:<10} {user['email']} / {user['password']}")
