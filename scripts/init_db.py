"""Create the tables and a bootstrap admin account.

ADMIN_EMAIL / ADMIN_PASSWORD override the default credentials.
"""
import os

from dotenv import load_dotenv
load_dotenv()

from qrcheckin import create_app
from qrcheckin.extensions import db
from qrcheckin.models import User

ADMIN_EMAIL    = os.environ.get('ADMIN_EMAIL', 'admin@qrcheckin.local').strip().lower()
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'admin123')


def bootstrap_admin():
    if User.query.filter_by(email=ADMIN_EMAIL).first():
        print(f"✓ Admin {ADMIN_EMAIL} already present")
        return

    admin = User(email=ADMIN_EMAIL, name='Check-in Administrator', role='admin')
    admin.set_password(ADMIN_PASSWORD)
    db.session.add(admin)
    db.session.commit()
    print(f"✓ Admin created: {ADMIN_EMAIL} / {ADMIN_PASSWORD}")


if __name__ == '__main__':
    app = create_app(os.environ.get('FLASK_CONFIG', 'development'))
    with app.app_context():
        db.create_all()
        bootstrap_admin()
        print(f"✓ Tables ready at {app.config['SQLALCHEMY_DATABASE_URI']}")
