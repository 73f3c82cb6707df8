"""
auth/store.py -- pymongo persistence layer for auth entities.

Pattern: Repository + Data Mapper. AuthStore is the repository; _doc_to_user /
_doc_to_account / _doc_to_session are the mappers. Service and route code never
touches collections directly.

Collections (camelCase field names):
  user     -- unique index on email
  account  -- unique index on (providerId, accountId), index on userId
  session  -- unique index on token, index on userId

Datetimes are written as naive UTC (BSON dates carry no zone) and turned back
into aware UTC datetimes by the mappers.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth.models import Account, Session, User

USER_COLLECTION = "user"
ACCOUNT_COLLECTION = "account"
SESSION_COLLECTION = "session"


class DuplicateEmailError(Exception):
    """Raised by create_user() when the email is already registered."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_bson_dt(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_bson_dt(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _object_id(value: str) -> ObjectId | None:
    return ObjectId(value) if ObjectId.is_valid(value) else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for User, Account and Session documents.

    Usage:
        store = AuthStore(get_database().database)
        store.ensure_indexes()
        user = store.create_user(User(name="Jo", email="jo@example.com"))
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        self._users = database[USER_COLLECTION]
        self._accounts = database[ACCOUNT_COLLECTION]
        self._sessions = database[SESSION_COLLECTION]

    def ensure_indexes(self) -> None:
        """Create the indexes the repository relies on. Idempotent."""
        self._users.create_index([("email", ASCENDING)], unique=True)
        self._accounts.create_index([("providerId", ASCENDING), ("accountId", ASCENDING)], unique=True)
        self._accounts.create_index([("userId", ASCENDING)])
        self._sessions.create_index([("token", ASCENDING)], unique=True)
        self._sessions.create_index([("userId", ASCENDING)])

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a user and return it with id and timestamps filled in.

        Raises DuplicateEmailError if the email already exists.
        """
        now = _now()
        doc = {
            "name": user.name,
            "email": user.email.lower(),
            "emailVerified": user.email_verified,
            "image": user.image,
            "createdAt": _to_bson_dt(now),
            "updatedAt": _to_bson_dt(now),
        }
        try:
            result = self._users.insert_one(doc)
        except DuplicateKeyError as exc:
            raise DuplicateEmailError(user.email) from exc
        doc["_id"] = result.inserted_id
        return _doc_to_user(doc)

    def get_user_by_id(self, user_id: str) -> User | None:
        oid = _object_id(user_id)
        if oid is None:
            return None
        doc = self._users.find_one({"_id": oid})
        return _doc_to_user(doc) if doc is not None else None

    def get_user_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive via lower-cased storage)."""
        doc = self._users.find_one({"email": email.lower()})
        return _doc_to_user(doc) if doc is not None else None

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable user fields (name, image, email_verified).

        Returns True if a user matched.
        """
        oid = _object_id(user_id)
        if oid is None:
            return False
        mapping = {"name": "name", "image": "image", "email_verified": "emailVerified"}
        unknown = set(fields) - set(mapping)
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        updates = {mapping[k]: v for k, v in fields.items()}
        updates["updatedAt"] = _to_bson_dt(_now())
        result = self._users.update_one({"_id": oid}, {"$set": updates})
        return result.matched_count > 0

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> Account:
        now = _now()
        doc = {
            "userId": account.user_id,
            "providerId": account.provider_id,
            "accountId": account.account_id,
            "password": account.password,
            "accessToken": account.access_token,
            "scope": account.scope,
            "createdAt": _to_bson_dt(now),
            "updatedAt": _to_bson_dt(now),
        }
        result = self._accounts.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _doc_to_account(doc)

    def get_account(self, provider_id: str, account_id: str) -> Account | None:
        doc = self._accounts.find_one({"providerId": provider_id, "accountId": account_id})
        return _doc_to_account(doc) if doc is not None else None

    def get_user_account(self, user_id: str, provider_id: str) -> Account | None:
        """Return the user's account for a given provider ("credential" for passwords)."""
        doc = self._accounts.find_one({"userId": user_id, "providerId": provider_id})
        return _doc_to_account(doc) if doc is not None else None

    def update_account_tokens(self, account_id: str, access_token: str | None, scope: str | None) -> None:
        """Refresh the stored provider token after a repeat OAuth sign-in."""
        oid = _object_id(account_id)
        if oid is None:
            return
        self._accounts.update_one(
            {"_id": oid},
            {"$set": {"accessToken": access_token, "scope": scope, "updatedAt": _to_bson_dt(_now())}},
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, session: Session) -> Session:
        now = _now()
        doc = {
            "userId": session.user_id,
            "token": session.token,
            "expiresAt": _to_bson_dt(session.expires_at),
            "ipAddress": session.ip_address,
            "userAgent": session.user_agent,
            "createdAt": _to_bson_dt(now),
            "updatedAt": _to_bson_dt(now),
        }
        result = self._sessions.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _doc_to_session(doc)

    def get_session_by_token(self, token: str) -> Session | None:
        doc = self._sessions.find_one({"token": token})
        return _doc_to_session(doc) if doc is not None else None

    def delete_session(self, token: str) -> bool:
        """Delete a session by token. Returns True if one was removed."""
        result = self._sessions.delete_one({"token": token})
        return result.deleted_count > 0

    def delete_expired_sessions(self) -> int:
        """Remove every session whose expiresAt is in the past. Returns the count."""
        result = self._sessions.delete_many({"expiresAt": {"$lt": _to_bson_dt(_now())}})
        return result.deleted_count


# ---------------------------------------------------------------------------
# Document mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _doc_to_user(doc: dict) -> User:
    return User(
        id=str(doc["_id"]),
        name=doc.get("name") or "",
        email=doc["email"],
        email_verified=bool(doc.get("emailVerified", False)),
        image=doc.get("image"),
        created_at=_from_bson_dt(doc.get("createdAt")),
        updated_at=_from_bson_dt(doc.get("updatedAt")),
    )


def _doc_to_account(doc: dict) -> Account:
    return Account(
        id=str(doc["_id"]),
        user_id=doc["userId"],
        provider_id=doc["providerId"],
        account_id=doc["accountId"],
        password=doc.get("password"),
        access_token=doc.get("accessToken"),
        scope=doc.get("scope"),
        created_at=_from_bson_dt(doc.get("createdAt")),
        updated_at=_from_bson_dt(doc.get("updatedAt")),
    )


def _doc_to_session(doc: dict) -> Session:
    return Session(
        id=str(doc["_id"]),
        user_id=doc["userId"],
        token=doc["token"],
        expires_at=_from_bson_dt(doc["expiresAt"]),
        ip_address=doc.get("ipAddress"),
        user_agent=doc.get("userAgent"),
        created_at=_from_bson_dt(doc.get("createdAt")),
        updated_at=_from_bson_dt(doc.get("updatedAt")),
    )
