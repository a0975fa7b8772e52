"""Identity and role resolution.

Every request resolves to a ``Principal``: who the caller is and which role
they act in. The provider behind it is chosen by ``AUTH_BACKEND``:

- ``database``: users table, bcrypt hashes, signed JWT bearer tokens.
- ``memory``: process-local store for tests and offline demos. It is built
  once per app and passed in through the dependency, never imported as a
  module global.
"""

from __future__ import annotations

import abc
import itertools
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Mapping, Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..core.config import Settings, settings
from ..crud import crud_user
from ..crud.crud_user import is_profile_complete
from ..models.user import UserRole
from ..schemas.user import UserCreate, UserUpdate
from ..utils.auth import get_password_hash, normalize_email, verify_password
from .exceptions import AuthenticationFailed, NotFound, ValidationError


@dataclass(frozen=True)
class Identity:
    user_id: int
    email: str
    display_name: str
    photo_url: Optional[str] = None
    phone_number: Optional[str] = None
    city: Optional[str] = None
    profile_complete: bool = False


@dataclass(frozen=True)
class Principal:
    identity: Identity
    role: UserRole

    @property
    def user_id(self) -> int:
        return self.identity.user_id


class IdentityProvider(abc.ABC):
    def __init__(self, config: Settings = settings) -> None:
        self.config = config

    @abc.abstractmethod
    def register(self, payload: UserCreate) -> Identity:
        ...

    @abc.abstractmethod
    def authenticate(self, email: str, password: str) -> Identity:
        ...

    @abc.abstractmethod
    def get_identity(self, user_id: int) -> Optional[Identity]:
        ...

    @abc.abstractmethod
    def resolve_role(self, user_id: int) -> UserRole:
        """Role of a stored user; ``GUEST`` when the user is unknown."""

    @abc.abstractmethod
    def update_profile(self, user_id: int, payload: UserUpdate) -> Identity:
        """Apply the fields set in ``payload``; ``profile_complete`` is recomputed."""

    @staticmethod
    def _profile_changes(payload: UserUpdate) -> Dict[str, Optional[str]]:
        changes: Dict[str, Optional[str]] = {}
        for field, value in payload.model_dump(exclude_unset=True).items():
            value = (value or "").strip()
            if field == "display_name":
                if not value:
                    raise ValidationError("Display name cannot be blank.", {"display_name": "blank"})
                changes[field] = value
            else:
                changes[field] = value or None
        return changes

    def _check_role_allowed(self, payload: UserCreate) -> None:
        if payload.role == UserRole.ADMIN.value and normalize_email(payload.email) not in self.config.admin_emails:
            raise ValidationError(
                "This email is not authorized to register as an admin.",
                {"role": "admin_not_allowed"},
            )

    def issue_token(self, identity: Identity, expires_delta: Optional[timedelta] = None) -> str:
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode = {"sub": str(identity.user_id), "email": identity.email, "exp": expire}
        return jwt.encode(to_encode, self.config.SECRET_KEY, algorithm=self.config.ALGORITHM)

    def identity_from_token(self, token: str) -> Identity:
        try:
            payload = jwt.decode(token, self.config.SECRET_KEY, algorithms=[self.config.ALGORITHM])
            user_id = int(payload.get("sub"))
        except (JWTError, TypeError, ValueError):
            raise AuthenticationFailed("Could not validate credentials")
        identity = self.get_identity(user_id)
        if identity is None:
            raise AuthenticationFailed("Could not validate credentials")
        return identity

    def resolve(self, token: Optional[str]) -> Principal:
        """Token → principal. A missing token is an anonymous guest."""
        if not token:
            return Principal(Identity(user_id=0, email="", display_name=""), UserRole.GUEST)
        identity = self.identity_from_token(token)
        return Principal(identity, self.resolve_role(identity.user_id))


class DatabaseIdentityProvider(IdentityProvider):
    def __init__(self, db: Session, config: Settings = settings) -> None:
        super().__init__(config)
        self.db = db

    @staticmethod
    def _to_identity(user) -> Identity:  # noqa: ANN001
        return Identity(
            user_id=user.id,
            email=user.email,
            display_name=user.display_name or "",
            photo_url=user.photo_url,
            phone_number=user.phone_number,
            city=user.city,
            profile_complete=bool(user.profile_complete),
        )

    def register(self, payload: UserCreate) -> Identity:
        self._check_role_allowed(payload)
        if crud_user.user.get_user_by_email(self.db, payload.email):
            raise ValidationError("Email already registered", {"email": "taken"})
        return self._to_identity(crud_user.user.create_user(self.db, payload))

    def authenticate(self, email: str, password: str) -> Identity:
        user = crud_user.user.get_user_by_email(self.db, email)
        if not user or not user.is_active or not verify_password(password, user.password):
            raise AuthenticationFailed("Incorrect email or password", {"email": "invalid_credentials"})
        return self._to_identity(user)

    def get_identity(self, user_id: int) -> Optional[Identity]:
        user = crud_user.user.get_user(self.db, user_id)
        if user is None or not user.is_active:
            return None
        return self._to_identity(user)

    def update_profile(self, user_id: int, payload: UserUpdate) -> Identity:
        changes = self._profile_changes(payload)
        user = crud_user.user.get_user(self.db, user_id)
        if user is None or not user.is_active:
            raise NotFound("User not found.", {"user_id": "not_found"})
        return self._to_identity(crud_user.user.update_user(self.db, user, changes))

    def resolve_role(self, user_id: int) -> UserRole:
        user = crud_user.user.get_user(self.db, user_id)
        if user is None or user.role is None:
            return UserRole.GUEST
        return UserRole(user.role)


class InMemoryIdentityProvider(IdentityProvider):
    """Process-local users; passwords are hashed the same way as in the database."""

    def __init__(self, users: Iterable[Mapping] = (), config: Settings = settings) -> None:
        super().__init__(config)
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._users: Dict[int, dict] = {}
        for record in users:
            self._add(
                email=record["email"],
                password=record["password"],
                display_name=record.get("display_name", ""),
                role=UserRole(record.get("role", UserRole.USER.value)),
                photo_url=record.get("photo_url"),
                phone_number=record.get("phone_number"),
                city=record.get("city"),
            )

    def _add(
        self, email: str, password: str, display_name: str, role: UserRole,
        photo_url=None, phone_number=None, city=None,
    ) -> dict:
        record = {
            "id": next(self._ids),
            "email": normalize_email(email),
            "password": get_password_hash(password),
            "display_name": display_name,
            "role": role,
            "photo_url": photo_url,
            "phone_number": phone_number,
            "city": city,
        }
        self._users[record["id"]] = record
        return record

    def _by_email(self, email: str) -> Optional[dict]:
        email = normalize_email(email)
        return next((u for u in self._users.values() if u["email"] == email), None)

    @staticmethod
    def _to_identity(record: dict) -> Identity:
        return Identity(
            user_id=record["id"],
            email=record["email"],
            display_name=record["display_name"],
            photo_url=record["photo_url"],
            phone_number=record["phone_number"],
            city=record["city"],
            profile_complete=is_profile_complete(record["phone_number"], record["city"]),
        )

    def register(self, payload: UserCreate) -> Identity:
        self._check_role_allowed(payload)
        with self._lock:
            if self._by_email(payload.email):
                raise ValidationError("Email already registered", {"email": "taken"})
            record = self._add(
                email=payload.email,
                password=payload.password,
                display_name=payload.display_name.strip(),
                role=UserRole(payload.role),
                phone_number=payload.phone_number,
                city=payload.city,
            )
        return self._to_identity(record)

    def authenticate(self, email: str, password: str) -> Identity:
        record = self._by_email(email)
        if record is None or not verify_password(password, record["password"]):
            raise AuthenticationFailed("Incorrect email or password", {"email": "invalid_credentials"})
        return self._to_identity(record)

    def get_identity(self, user_id: int) -> Optional[Identity]:
        record = self._users.get(user_id)
        return self._to_identity(record) if record else None

    def resolve_role(self, user_id: int) -> UserRole:
        record = self._users.get(user_id)
        return record["role"] if record else UserRole.GUEST

    def update_profile(self, user_id: int, payload: UserUpdate) -> Identity:
        changes = self._profile_changes(payload)
        with self._lock:
            record = self._users.get(user_id)
            if record is None:
                raise NotFound("User not found.", {"user_id": "not_found"})
            record.update(changes)
        return self._to_identity(record)
