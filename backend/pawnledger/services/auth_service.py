"""
Authentication Service

Every book, item and invoice is attributable to one account. Passwords are
hashed with bcrypt and validated for strength before hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import User
from ..validation import ConflictError, ValidationError
from pawnledger.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise ValidationError("A valid email is required")
    return value


def _email_taken(email: str, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(func.lower(User.email) == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def create_user(email: str, password: str, username: str | None = None, is_admin: bool = False) -> User:
    """
    Create a new account.

    The username defaults to the local part of the email. Emails are unique
    case-insensitively.

    Raises:
        ValidationError: malformed email
        PasswordValidationError: weak password
        ConflictError: email already registered
    """
    email = normalize_email(email)
    username = (username or "").strip() or email.split("@", 1)[0]
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")

    if _email_taken(email):
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password),
        is_admin=is_admin,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate by email or username.

    Returns the User when credentials are valid, None otherwise.
    Updates last_login_at on success.
    """
    identifier = (identifier or "").strip()
    if not identifier or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(func.lower(User.email) == identifier.lower(), User.username == identifier),
        User.is_active.is_(True),
    ).order_by(User.id.asc()).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def update_profile(user: User, *, username: str | None = None, email: str | None = None) -> User:
    if username is not None:
        username = username.strip()
        if not username:
            raise ValidationError("username cannot be blank")
        if len(username) > 64:
            raise ValidationError("username exceeds max length 64")
        user.username = username

    if email is not None:
        email = normalize_email(email)
        if _email_taken(email, exclude_user_id=user.id):
            raise ConflictError("Email already registered")
        user.email = email

    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    """
    Replace the password after verifying the current one.

    Callers revoke the user's other sessions afterwards.
    """
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()


def set_admin(user_id: int, is_admin: bool = True) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    user.is_admin = is_admin
    db.session.commit()
    return user
