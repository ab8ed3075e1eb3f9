"""PostgreSQL persistence for invites and the redemption transaction."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from psycopg2.extensions import cursor as PgCursor

from ..db import PostgresRepository, as_json
from ..entitlements import BillingSnapshot
from ..families.repository import UPSERT_MEMBER_SQL, upsert_member_params
from .models import FamilyInvite, InviteRedemption, InviteStatus, InviteType, RedemptionOutcome

_INVITE_COLUMNS = """
    id, family_id, family_name, created_by, created_at, expires_at, invite_type,
    token, code, status, max_uses, used_count, accepted_by, revoked_at
"""


class _RedemptionRejected(Exception):
    def __init__(self, outcome: RedemptionOutcome) -> None:
        super().__init__(outcome.value)
        self.outcome = outcome


def _row_to_invite(row: dict) -> FamilyInvite:
    return FamilyInvite(
        id=row["id"],
        family_id=row["family_id"],
        family_name=row.get("family_name") or "",
        created_by=row["created_by"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        invite_type=InviteType(row.get("invite_type") or InviteType.LINK.value),
        token=row["token"],
        code=row["code"],
        status=InviteStatus(row["status"]),
        max_uses=int(row["max_uses"]),
        used_count=int(row["used_count"]),
        accepted_by=list(row.get("accepted_by") or []),
        revoked_at=row.get("revoked_at"),
    )


class PostgresInviteRepository(PostgresRepository):
    """Invites stored relationally; redemption writes users and families too."""

    def create_invite(self, invite: FamilyInvite) -> FamilyInvite:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO family_invites (
                    id, family_id, family_name, created_by, created_at, expires_at,
                    invite_type, token, code, status, max_uses, used_count, accepted_by
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {_INVITE_COLUMNS}
                """,
                (
                    invite.id,
                    invite.family_id,
                    invite.family_name,
                    invite.created_by,
                    invite.created_at,
                    invite.expires_at,
                    invite.invite_type.value,
                    invite.token,
                    invite.code,
                    invite.status.value,
                    invite.max_uses,
                    invite.used_count,
                    list(invite.accepted_by),
                ),
            )
            row = cursor.fetchone()
        return _row_to_invite(row)

    def get_invite(self, family_id: str, invite_id: str) -> Optional[FamilyInvite]:
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT {_INVITE_COLUMNS} FROM family_invites WHERE family_id = %s AND id = %s",
                (family_id, invite_id),
            )
            row = cursor.fetchone()
        return _row_to_invite(row) if row else None

    def find_by_token(self, token: str) -> Optional[FamilyInvite]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {_INVITE_COLUMNS} FROM family_invites WHERE token = %s", (token,))
            row = cursor.fetchone()
        return _row_to_invite(row) if row else None

    def find_by_code(self, code: str, family_id: Optional[str] = None) -> List[FamilyInvite]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_INVITE_COLUMNS}
                  FROM family_invites
                 WHERE code = %s
                   AND (%s::text IS NULL OR family_id = %s::text)
                 ORDER BY created_at DESC
                """,
                (code.upper(), family_id, family_id),
            )
            rows = cursor.fetchall()
        return [_row_to_invite(row) for row in rows]

    def list_family_invites(self, family_id: str) -> List[FamilyInvite]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_INVITE_COLUMNS}
                  FROM family_invites
                 WHERE family_id = %s
                 ORDER BY created_at DESC
                """,
                (family_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_invite(row) for row in rows]

    def pending_code_exists(self, family_id: str, code: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT 1
                  FROM family_invites
                 WHERE family_id = %s AND code = %s AND status = 'pending'
                 LIMIT 1
                """,
                (family_id, code),
            )
            return cursor.fetchone() is not None

    def mark_revoked(self, family_id: str, invite_id: str, revoked_at: datetime) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE family_invites
                   SET status = 'revoked', revoked_at = %s
                 WHERE family_id = %s AND id = %s AND status = 'pending'
                """,
                (revoked_at, family_id, invite_id),
            )
            return cursor.rowcount == 1

    def apply_redemption(self, redemption: InviteRedemption) -> RedemptionOutcome:
        """Run the redemption in one transaction.

        Both rejection checks happen before the first write, so a rejected
        redemption leaves a caller-supplied connection untouched as well.
        """

        try:
            with self._cursor() as cursor:
                seats_used = self._lock_owner_seat(cursor, redemption.owner_id)
                self._advance_invite(cursor, redemption)
                self._write_redemption(cursor, redemption, seats_used + 1)
        except _RedemptionRejected as rejected:
            return rejected.outcome
        return RedemptionOutcome.APPLIED

    def _lock_owner_seat(self, cursor: PgCursor, owner_id: str) -> int:
        cursor.execute(
            "SELECT document -> 'billing' AS billing FROM users WHERE id = %s FOR UPDATE",
            (owner_id,),
        )
        row = cursor.fetchone()
        if row is None or not row["billing"]:
            raise _RedemptionRejected(RedemptionOutcome.SEATS_EXHAUSTED)
        billing = BillingSnapshot.model_validate(row["billing"])
        if not billing.seats.has_capacity:
            raise _RedemptionRejected(RedemptionOutcome.SEATS_EXHAUSTED)
        return billing.seats.used

    def _advance_invite(self, cursor: PgCursor, redemption: InviteRedemption) -> None:
        invite = redemption.invite
        cursor.execute(
            """
            UPDATE family_invites
               SET used_count = used_count + 1,
                   accepted_by = array_append(accepted_by, %s),
                   status = %s
             WHERE id = %s
               AND family_id = %s
               AND status = 'pending'
               AND used_count = %s
            """,
            (
                redemption.user_id,
                redemption.next_status.value,
                invite.id,
                invite.family_id,
                redemption.expected_used_count,
            ),
        )
        if cursor.rowcount != 1:
            raise _RedemptionRejected(RedemptionOutcome.INVITE_CHANGED)

    def _write_redemption(self, cursor: PgCursor, redemption: InviteRedemption, seats_used: int) -> None:
        timestamp = redemption.redeemed_at.isoformat()
        cursor.execute(
            """
            UPDATE users
               SET document = jsonb_set(document, '{billing,seats,used}', to_jsonb(%s::int)),
                   updated_at = NOW()
             WHERE id = %s
            """,
            (seats_used, redemption.owner_id),
        )
        cursor.execute(
            UPSERT_MEMBER_SQL,
            upsert_member_params(
                redemption.invite.family_id,
                redemption.member_profile(),
                redemption.redeemed_at,
            ),
        )
        cursor.execute(
            """
            UPDATE users
               SET document = jsonb_set(
                       jsonb_set(
                           CASE
                               WHEN COALESCE(document ->> 'primary_family_id', '') = ''
                               THEN jsonb_set(document, '{primary_family_id}', to_jsonb(%s::text))
                               ELSE document
                           END,
                           '{families}',
                           COALESCE(document -> 'families', '[]'::jsonb) || %s::jsonb
                       ),
                       '{updated_at}',
                       to_jsonb(%s::text)
                   ),
                   updated_at = NOW()
             WHERE id = %s
            """,
            (
                redemption.invite.family_id,
                as_json([redemption.family_link().model_dump(mode="json")]),
                timestamp,
                redemption.user_id,
            ),
        )
        if cursor.rowcount != 1:
            raise LookupError("User not found")


__all__ = ["PostgresInviteRepository"]
