from flask import current_app

from qrcheckin.extensions import db
from qrcheckin.models import User, ROLES
from qrcheckin.utils.validators import validate_email, validate_password

# Roles a visitor may pick when signing up; admins are created from the CLI
SELF_SERVICE_ROLES = ('organizer', 'staff', 'attendee')


class AuthService:
    """Authentication and user management business logic"""

    @staticmethod
    def register_user(email, password, name, role):
        """Register a new user. Returns (user, error, status)."""
        email = (email or '').strip().lower()
        name  = (name or '').strip()

        if not name or not email or not password or not role:
            return None, "Name, email, password, and role are required", 400
        if role not in SELF_SERVICE_ROLES:
            return None, f"Invalid role. Must be one of: {', '.join(SELF_SERVICE_ROLES)}", 400
        if not validate_email(email):
            return None, "Invalid email address", 400

        valid, message = validate_password(password)
        if not valid:
            return None, message, 400

        if AuthService.email_exists(email):
            return None, "User with this email already exists", 409

        try:
            user = User(email=email, name=name, role=role)
            user.set_password(password)

            db.session.add(user)
            db.session.commit()

            current_app.logger.info(f"User registered: {email}")
            return user, None, 201

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Registration failed: {str(e)}")
            return None, "Failed to register user", 500

    @staticmethod
    def verify_credentials(email, password):
        """Verify user login credentials"""
        email = (email or '').strip().lower()
        user = User.query.filter_by(email=email).first()

        if user and password and user.check_password(password) and user.is_active:
            current_app.logger.info(f"Login successful: {email}")
            return user

        current_app.logger.warning(f"Login failed: {email}")
        return None

    @staticmethod
    def email_exists(email):
        return User.query.filter_by(email=email).first() is not None

    @staticmethod
    def get_user_by_id(user_id):
        return db.session.get(User, user_id)

    @staticmethod
    def list_users():
        return User.query.order_by(User.created_at.desc(), User.id.desc()).all()

    @staticmethod
    def update_user(user_id, name=None, email=None, role=None):
        """Update name, email and role. Returns (user, error)."""
        try:
            user = db.session.get(User, user_id)
            if not user:
                return None, "User not found"

            if email is not None:
                email = email.strip().lower()
                if not validate_email(email):
                    return None, "Invalid email address"
                other = User.query.filter_by(email=email).first()
                if other and other.id != user.id:
                    return None, "User with this email already exists"
                user.email = email
            if role is not None:
                if role not in ROLES:
                    return None, f"Invalid role. Must be one of: {', '.join(ROLES)}"
                user.role = role
            if name:
                user.name = name.strip()

            db.session.commit()
            current_app.logger.info(f"User updated: {user_id}")
            return user, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"User update failed: {str(e)}")
            return None, "Failed to update user"

    @staticmethod
    def delete_user(user_id):
        """Users who still own events cannot be removed."""
        try:
            user = db.session.get(User, user_id)
            if not user:
                return False, "User not found"
            if user.organized_events.count():
                return False, "User still organizes events"

            db.session.delete(user)
            db.session.commit()
            current_app.logger.info(f"User deleted: {user_id}")
            return True, "User deleted successfully"

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"User deletion failed: {str(e)}")
            return False, "Failed to delete user"
