import copy
import logging
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, Protocol, TypeVar

from jose import JWTError, jwt
from passlib.context import CryptContext

from carebook import config
from carebook.errors import AuthError, BackendError
from carebook.models import Table

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

Filters = Mapping[str, Any]
NowFn = Callable[[], datetime]

TOKEN_ALGORITHM = "HS256"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: AuthUser


class Backend(Protocol):
    """
    Data/auth handle for the backend-as-a-service.

    Filters map a column to a value; an iterable (other than a string) matches
    any of its members.
    """

    async def select(
        self,
        table: Table,
        *,
        filters: Filters | None = None,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]: ...

    async def insert(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]: ...

    async def update(
        self, table: Table, values: Mapping[str, Any], *, filters: Filters
    ) -> list[dict[str, Any]]: ...

    async def sign_up(
        self, email: str, password: str, metadata: Mapping[str, Any] | None = None
    ) -> AuthSession: ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def get_user(self, access_token: str) -> AuthUser: ...

    async def sign_out(self, access_token: str) -> None: ...

    def with_auth(self, access_token: str) -> "Backend": ...

    async def aclose(self) -> None: ...


def matches(row: Mapping[str, Any], filters: Filters | None) -> bool:
    for column, expected in (filters or {}).items():
        value = row.get(column)
        if isinstance(expected, Iterable) and not isinstance(expected, str):
            if value not in list(expected):
                return False
        elif value != expected:
            return False
    return True


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def __iter__(self) -> Iterator[V]:
        return iter(self._store.values())


class InMemoryBackend:
    """
    Process-local stand-in for the hosted backend. One key/value store per
    table, keyed by row id. Rows go in and come out as copies, the same way
    they would cross the wire.
    """

    def __init__(
        self,
        *,
        now_fn: NowFn | None = None,
        secret_key: str | None = None,
        token_ttl: timedelta | None = None,
    ) -> None:
        self.tables: dict[Table, InMemoryKeyValueDatabase[str, dict[str, Any]]] = {
            table: InMemoryKeyValueDatabase() for table in Table
        }
        self.now_fn: NowFn = now_fn or (lambda: datetime.now(UTC))
        self._secret_key = secret_key or config.SECRET_KEY
        self._token_ttl = token_ttl or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
        self._pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
        self._users_by_email: dict[str, dict[str, str]] = {}
        self._revoked_token_ids: set[str] = set()

    # tables

    async def select(
        self,
        table: Table,
        *,
        filters: Filters | None = None,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        rows = [copy.deepcopy(r) for r in self.tables[table] if matches(r, filters)]
        if order is not None:
            # nulls sort last in both directions
            present = [r for r in rows if r.get(order) is not None]
            missing = [r for r in rows if r.get(order) is None]
            present.sort(key=lambda r: r[order], reverse=descending)
            rows = present + missing
        return rows

    async def insert(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(dict(row))
        stored.setdefault("id", str(uuid.uuid4()))
        if self.tables[table].get(stored["id"]) is not None:
            raise BackendError(f"duplicate key value violates unique constraint on {table}.id")
        now = self.now_fn().isoformat()
        stored.setdefault("created_at", now)
        if table not in (Table.REVIEWS, Table.TRAINING_RESOURCES, Table.NOTIFICATIONS):
            stored.setdefault("updated_at", now)
        self.tables[table].put(stored["id"], stored)
        return copy.deepcopy(stored)

    async def update(
        self, table: Table, values: Mapping[str, Any], *, filters: Filters
    ) -> list[dict[str, Any]]:
        updated = []
        now = self.now_fn().isoformat()
        for row in self.tables[table]:
            if not matches(row, filters):
                continue
            row.update(copy.deepcopy(dict(values)))
            if "updated_at" in row:
                row["updated_at"] = now
            updated.append(copy.deepcopy(row))
        return updated

    # auth

    async def sign_up(
        self, email: str, password: str, metadata: Mapping[str, Any] | None = None
    ) -> AuthSession:
        key = email.strip().lower()
        if key in self._users_by_email:
            raise AuthError("User already registered")
        user = {
            "id": str(uuid.uuid4()),
            "email": key,
            "password_hash": self._pwd_context.hash(password),
        }
        self._users_by_email[key] = user
        logger.info(f"Registered auth user {user['id']}")
        return self._issue(user)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        user = self._users_by_email.get(email.strip().lower())
        if not user or not self._pwd_context.verify(password, user["password_hash"]):
            raise AuthError("Invalid login credentials")
        return self._issue(user)

    async def get_user(self, access_token: str) -> AuthUser:
        claims = self._decode(access_token)
        return AuthUser(id=claims["sub"], email=claims["email"])

    async def sign_out(self, access_token: str) -> None:
        claims = self._decode(access_token)
        self._revoked_token_ids.add(claims["jti"])

    def with_auth(self, access_token: str) -> "InMemoryBackend":
        # no row-level security in-process; every handle sees every table
        return self

    async def aclose(self) -> None:
        return None

    def _issue(self, user: Mapping[str, str]) -> AuthSession:
        expires = self.now_fn() + self._token_ttl
        claims = {
            "sub": user["id"],
            "email": user["email"],
            "jti": str(uuid.uuid4()),
            "exp": int(expires.timestamp()),
        }
        token = jwt.encode(claims, self._secret_key, algorithm=TOKEN_ALGORITHM)
        return AuthSession(
            access_token=token, user=AuthUser(id=user["id"], email=user["email"])
        )

    def _decode(self, access_token: str) -> dict[str, Any]:
        try:
            # expiry is checked against now_fn below, not the wall clock
            claims = jwt.decode(
                access_token,
                self._secret_key,
                algorithms=[TOKEN_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as e:
            raise AuthError("Invalid or expired token") from e
        if claims.get("exp", 0) <= self.now_fn().timestamp():
            raise AuthError("Invalid or expired token")
        if claims.get("jti") in self._revoked_token_ids:
            raise AuthError("Session has been signed out")
        return claims
