"""User directory and the authenticated-session record.

Passwords are stored as bcrypt hashes. The directory is seeded with one
administrator the first time it is read.
"""
from typing import List, Optional

import bcrypt

from booking import config
from booking.errors import NotFoundError, ValidationError
from booking.logging_config import get_logger
from booking.models import PublicUser, User, UserPatch
from booking.storage import KeyValueStore, load_collection, load_model, save_collection, save_model

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed hash
        return False


class UserDirectory:
    """Manages application users (administrators and clients)."""

    def __init__(self, store: KeyValueStore, admin_email: str, admin_password: str):
        """
        Args:
            store: Key-value storage backend
            admin_email: Email of the seeded administrator
            admin_password: Plain-text password of the seeded administrator
        """
        self.store = store
        self.admin_email = admin_email
        self.admin_password = admin_password

    def _default_admins(self) -> List[User]:
        return [
            User(
                id="admin-1",
                name="Administrator",
                email=self.admin_email,
                password_hash=hash_password(self.admin_password),
                role="admin",
            )
        ]

    def get_users(self) -> List[User]:
        if self.store.get(config.USERS_KEY) is None:
            admins = self._default_admins()
            self.save_users(admins)
            logger.info("users_seeded", admin_email=self.admin_email)
            return admins
        return load_collection(self.store, config.USERS_KEY, User, self._default_admins)

    def save_users(self, users: List[User]) -> None:
        save_collection(self.store, config.USERS_KEY, users)

    def get_user(self, user_id: str) -> User:
        user = next((u for u in self.get_users() if u.id == user_id), None)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def add_user(self, name: str, email: str, password: str, role: str = "client") -> User:
        """
        Raises:
            ValidationError: If the email is already registered
        """
        users = self.get_users()
        if any(u.email.lower() == email.lower() for u in users):
            raise ValidationError("This email is already in use")

        user = User(name=name, email=email, password_hash=hash_password(password), role=role)
        users.append(user)
        self.save_users(users)
        logger.info("user_added", user_id=user.id, role=role)
        return user

    def update_user(self, user_id: str, patch: UserPatch) -> User:
        users = self.get_users()
        index = next((i for i, u in enumerate(users) if u.id == user_id), None)
        if index is None:
            raise NotFoundError("user", user_id)

        changes = patch.model_dump(exclude_unset=True)
        if "email" in changes and any(
            u.email.lower() == changes["email"].lower() and u.id != user_id for u in users
        ):
            raise ValidationError("This email is already in use")

        password = changes.pop("password", None)
        if password:
            changes["password_hash"] = hash_password(password)

        users[index] = users[index].model_copy(update=changes)
        self.save_users(users)
        logger.info("user_updated", user_id=user_id, fields=sorted(changes))
        return users[index]

    def delete_user(self, user_id: str) -> bool:
        users = self.get_users()
        remaining = [u for u in users if u.id != user_id]
        if len(remaining) == len(users):
            return False

        self.save_users(remaining)
        logger.info("user_deleted", user_id=user_id)
        return True

    def validate_credentials(self, email: str, password: str) -> Optional[User]:
        user = next((u for u in self.get_users() if u.email.lower() == email.lower()), None)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    def create_admin(self, name: str, email: str, password: str) -> User:
        return self.add_user(name, email, password, role="admin")

    def create_client(self, name: str, email: str, password: str) -> User:
        return self.add_user(name, email, password, role="client")


class AuthSession:
    """Tracks the signed-in user; the stored record carries no password."""

    def __init__(self, store: KeyValueStore, directory: UserDirectory):
        self.store = store
        self.directory = directory

    def login(self, email: str, password: str) -> Optional[PublicUser]:
        user = self.directory.validate_credentials(email, password)
        if user is None:
            logger.warning("login_failed", email=email)
            return None

        public_user = user.public()
        save_model(self.store, config.AUTH_USER_KEY, public_user)
        logger.info("login_succeeded", user_id=user.id)
        return public_user

    def logout(self) -> None:
        self.store.remove(config.AUTH_USER_KEY)

    def current_user(self) -> Optional[PublicUser]:
        return load_model(self.store, config.AUTH_USER_KEY, PublicUser)

    @property
    def is_authenticated(self) -> bool:
        return self.current_user() is not None

    @property
    def is_admin(self) -> bool:
        user = self.current_user()
        return user is not None and user.role == "admin"
