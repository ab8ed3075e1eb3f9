"""PostgreSQL persistence for users and auth identities."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from ..db import PostgresRepository, as_json
from .auth import AuthIdentity
from .models import UserAccount


def _row_to_user(row: dict) -> UserAccount:
    return UserAccount.from_document(row["document"])


def _row_to_identity(row: dict) -> AuthIdentity:
    return AuthIdentity(
        uid=row["uid"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )


class PostgresUserRepository(PostgresRepository):
    """User documents stored as JSONB, updated one top-level field at a time."""

    def get_user(self, user_id: str) -> UserAccount:
        user = self.find_user(user_id)
        if user is None:
            raise LookupError("User not found")
        return user

    def find_user(self, user_id: str) -> Optional[UserAccount]:
        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
        return _row_to_user(row) if row else None

    def find_user_by_email(self, email: str) -> Optional[UserAccount]:
        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM users WHERE LOWER(email) = LOWER(%s)", (email,))
            row = cursor.fetchone()
        return _row_to_user(row) if row else None

    def list_users(self) -> List[UserAccount]:
        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM users ORDER BY id")
            rows = cursor.fetchall()
        return [_row_to_user(row) for row in rows]

    def create_user(self, user: UserAccount) -> UserAccount:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO users (id, email, document, updated_at)
                VALUES (%s, %s, %s, %s)
                RETURNING document
                """,
                (user.id, user.email, as_json(user.to_document()), user.updated_at),
            )
            row = cursor.fetchone()
        return _row_to_user(row)

    def update_user(self, user: UserAccount, fields: Sequence[str]) -> UserAccount:
        document = user.to_document()
        patch = {name: document[name] for name in fields}
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                   SET document = document || %s::jsonb,
                       updated_at = NOW()
                 WHERE id = %s
             RETURNING document
                """,
                (as_json(patch), user.id),
            )
            row = cursor.fetchone()
        if row is None:
            raise LookupError("User not found")
        return _row_to_user(row)

    def delete_user(self, user_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM users WHERE id = %s", (user_id,))

    def claim_seat(self, user_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                   SET document = jsonb_set(
                           document,
                           '{billing,seats,used}',
                           to_jsonb(COALESCE((document #>> '{billing,seats,used}')::int, 0) + 1)
                       ),
                       updated_at = NOW()
                 WHERE id = %s
                   AND jsonb_typeof(document -> 'billing') = 'object'
                """,
                (user_id,),
            )

    def release_seat(self, user_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                   SET document = jsonb_set(
                           document,
                           '{billing,seats,used}',
                           to_jsonb(GREATEST(COALESCE((document #>> '{billing,seats,used}')::int, 0) - 1, 0))
                       ),
                       updated_at = NOW()
                 WHERE id = %s
                   AND jsonb_typeof(document -> 'billing') = 'object'
                """,
                (user_id,),
            )

    def increment_lists_created(self, user_id: str, limit: Optional[int]) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                   SET document = jsonb_set(
                           document,
                           '{billing,lists_created}',
                           to_jsonb(COALESCE((document #>> '{billing,lists_created}')::int, 0) + 1)
                       ),
                       updated_at = NOW()
                 WHERE id = %s
                   AND jsonb_typeof(document -> 'billing') = 'object'
                   AND (
                       %s::int IS NULL
                       OR COALESCE((document #>> '{billing,lists_created}')::int, 0) < %s::int
                   )
             RETURNING id
                """,
                (user_id, limit, limit),
            )
            return cursor.fetchone() is not None

    def release_list_slot(self, user_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                   SET document = jsonb_set(
                           document,
                           '{billing,lists_created}',
                           to_jsonb(GREATEST(COALESCE((document #>> '{billing,lists_created}')::int, 0) - 1, 0))
                       ),
                       updated_at = NOW()
                 WHERE id = %s
                   AND jsonb_typeof(document -> 'billing') = 'object'
                """,
                (user_id,),
            )


class PostgresIdentityStore(PostgresRepository):
    """Credentials and password reset tokens."""

    def create_identity(self, identity: AuthIdentity) -> AuthIdentity:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO auth_identities (uid, email, password_hash, created_at)
                VALUES (%s, %s, %s, %s)
                RETURNING uid, email, password_hash, created_at
                """,
                (identity.uid, identity.email, identity.password_hash, identity.created_at),
            )
            row = cursor.fetchone()
        return _row_to_identity(row)

    def find_identity(self, uid: str) -> Optional[AuthIdentity]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT uid, email, password_hash, created_at FROM auth_identities WHERE uid = %s",
                (uid,),
            )
            row = cursor.fetchone()
        return _row_to_identity(row) if row else None

    def find_identity_by_email(self, email: str) -> Optional[AuthIdentity]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT uid, email, password_hash, created_at
                  FROM auth_identities
                 WHERE LOWER(email) = LOWER(%s)
                """,
                (email,),
            )
            row = cursor.fetchone()
        return _row_to_identity(row) if row else None

    def delete_identity(self, uid: str) -> None:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM auth_identities WHERE uid = %s", (uid,))

    def update_password_hash(self, uid: str, password_hash: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE auth_identities SET password_hash = %s WHERE uid = %s",
                (password_hash, uid),
            )
            if cursor.rowcount == 0:
                raise LookupError("Identity not found")

    def store_reset_token(self, uid: str, token_hash: str, expires_at: datetime) -> None:
        with self._cursor() as cursor:
            # One live token per identity.
            cursor.execute("DELETE FROM password_reset_tokens WHERE uid = %s", (uid,))
            cursor.execute(
                """
                INSERT INTO password_reset_tokens (token_hash, uid, expires_at)
                VALUES (%s, %s, %s)
                """,
                (token_hash, uid, expires_at),
            )

    def consume_reset_token(self, token_hash: str, now: datetime) -> Optional[str]:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM password_reset_tokens WHERE expires_at <= %s", (now,))
            cursor.execute(
                "DELETE FROM password_reset_tokens WHERE token_hash = %s RETURNING uid",
                (token_hash,),
            )
            row = cursor.fetchone()
        return row["uid"] if row else None


__all__ = ["PostgresIdentityStore", "PostgresUserRepository"]
