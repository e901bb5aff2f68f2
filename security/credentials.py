from models.user import User
from security.errors import AccountNotApproved, InvalidCredentials, MissingCredentials
from security.password import verify_password


def normalize_email(value) -> str:
    return (value or "").strip().lower() if isinstance(value, str) else ""


def find_user_by_email(email: str):
    normalized = normalize_email(email)
    if not normalized:
        return None
    return User.query.filter_by(email=normalized).first()


def verify_credentials(email, password) -> User:
    """Return the user owning these credentials.

    Unknown email and wrong password raise the same InvalidCredentials so the
    response never reveals which accounts exist.
    """
    normalized = normalize_email(email)
    if not normalized or not isinstance(password, str) or not password:
        raise MissingCredentials()

    user = User.query.filter_by(email=normalized).first()
    if not user:
        raise InvalidCredentials()

    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()

    if not user.is_approved and not user.is_admin:
        raise AccountNotApproved()

    return user
