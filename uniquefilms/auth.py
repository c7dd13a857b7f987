from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable
from uuid import uuid4

from werkzeug.security import check_password_hash, generate_password_hash

from .errors import Unauthenticated, ValidationError
from .store import SERVER_TIMESTAMP, DocumentStore, document_path

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str
    display_name: str | None = None

    def to_dict(self) -> dict:
        return {"uid": self.uid, "email": self.email, "displayName": self.display_name}


def _account_path(email: str) -> str:
    return document_path("accounts", email.strip().lower())


class AuthService:
    """
    Email/password accounts kept in the document store.

    The service also tracks one current session, the way the mobile client
    did, and notifies auth-state listeners whenever it changes.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self.logger = logging.getLogger(__name__)
        self._current: AuthUser | None = None
        self._listeners: list[Callable[[AuthUser | None], None]] = []
        self._lock = threading.RLock()

    @property
    def current_user(self) -> AuthUser | None:
        return self._current

    def _set_current(self, user: AuthUser | None) -> None:
        with self._lock:
            self._current = user
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(user)
            except Exception:
                self.logger.exception("Auth state listener failed")

    @staticmethod
    def _validate(email: str, password: str) -> tuple[str, str]:
        email = (email or "").strip()
        password = password or ""
        if not email or not password:
            raise ValidationError("Email and password are required")
        if "@" not in email or "/" in email:
            raise ValidationError("Invalid email address")
        return email, password

    def create_account(self, email: str, password: str) -> AuthUser:
        """Register an account without touching the tracked session."""
        email, password = self._validate(email, password)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        path = _account_path(email)
        if self.store.get(path) is not None:
            raise ValidationError("Email already in use")

        uid = uuid4().hex
        self.store.set(
            path,
            {
                "uid": uid,
                "email": email,
                "passwordHash": generate_password_hash(password),
                "displayName": None,
                "createdAt": SERVER_TIMESTAMP,
            },
        )
        self.logger.info(f"Signed up {email} as {uid}")
        return AuthUser(uid=uid, email=email)

    def authenticate(self, email: str, password: str) -> AuthUser:
        """Check credentials without touching the tracked session."""
        email, password = self._validate(email, password)
        account = self.store.get(_account_path(email))
        if not account or not check_password_hash(account.get("passwordHash") or "", password):
            self.logger.warning(f"Failed sign-in for {email}")
            raise Unauthenticated("Invalid credentials")
        return AuthUser(uid=account["uid"], email=account["email"], display_name=account.get("displayName"))

    def sign_up(self, email: str, password: str) -> AuthUser:
        user = self.create_account(email, password)
        self._set_current(user)
        return user

    def sign_in(self, email: str, password: str) -> AuthUser:
        user = self.authenticate(email, password)
        self._set_current(user)
        return user

    def sign_out(self) -> None:
        if self._current is not None:
            self.logger.info(f"Signed out {self._current.email}")
        self._set_current(None)

    def verify(self, uid: str, email: str) -> AuthUser | None:
        """Resolve a `uid:email` bearer pair to an account, or None."""
        if not uid or not email or "/" in email:
            return None
        account = self.store.get(_account_path(email))
        if not account or account.get("uid") != uid:
            return None
        return AuthUser(uid=account["uid"], email=account["email"], display_name=account.get("displayName"))

    def update_display_name(self, user: AuthUser | None, display_name: str) -> AuthUser:
        if user is None:
            raise Unauthenticated("You must be logged in to change your name")
        name = (display_name or "").strip()
        if not name:
            raise ValidationError("Username cannot be empty")
        self.store.update(_account_path(user.email), {"displayName": name})
        updated = AuthUser(uid=user.uid, email=user.email, display_name=name)
        if self._current is not None and self._current.uid == user.uid:
            self._set_current(updated)
        return updated

    def on_auth_state_changed(self, callback: Callable[[AuthUser | None], None]) -> Callable[[], None]:
        """Register ``callback``; it is called now and on every session change."""
        with self._lock:
            self._listeners.append(callback)
            current = self._current

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        callback(current)
        return unsubscribe
