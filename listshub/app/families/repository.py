"""PostgreSQL persistence for family documents."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from ..db import PostgresRepository, as_json
from .models import Family, FamilyMemberProfile

UPSERT_MEMBER_SQL = """
    UPDATE families
       SET document = jsonb_set(
               jsonb_set(document, ARRAY['members', %s]::text[], %s::jsonb, true),
               '{updated_at}',
               to_jsonb(%s::text)
           ),
           updated_at = NOW()
     WHERE id = %s
"""


def _row_to_family(row: dict) -> Family:
    return Family.from_document(row["document"])


def upsert_member_params(family_id: str, profile: FamilyMemberProfile, updated_at: datetime) -> tuple:
    return (
        profile.user_id,
        as_json(profile.model_dump(mode="json")),
        updated_at.isoformat(),
        family_id,
    )


class PostgresFamilyRepository(PostgresRepository):
    """Families as JSONB documents; member entries are written individually."""

    def get_family(self, family_id: str) -> Family:
        family = self.find_family(family_id)
        if family is None:
            raise LookupError("Family not found")
        return family

    def find_family(self, family_id: str) -> Optional[Family]:
        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM families WHERE id = %s", (family_id,))
            row = cursor.fetchone()
        return _row_to_family(row) if row else None

    def list_families(self, family_ids: Optional[Iterable[str]] = None) -> List[Family]:
        with self._cursor() as cursor:
            if family_ids is None:
                cursor.execute("SELECT document FROM families ORDER BY id")
            else:
                cursor.execute(
                    "SELECT document FROM families WHERE id = ANY(%s)",
                    (list(family_ids),),
                )
            rows = cursor.fetchall()
        return [_row_to_family(row) for row in rows]

    def list_family_documents(self) -> List[dict]:
        """Raw stored documents, before any normalisation by the model."""

        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM families ORDER BY id")
            rows = cursor.fetchall()
        return [row["document"] for row in rows]

    def create_family(self, family: Family) -> Family:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO families (id, owner_id, document, updated_at)
                VALUES (%s, %s, %s, %s)
                RETURNING document
                """,
                (family.id, family.owner_id, as_json(family.to_document()), family.updated_at),
            )
            row = cursor.fetchone()
        return _row_to_family(row)

    def save_family(self, family: Family) -> Family:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE families
                   SET owner_id = %s,
                       document = %s,
                       updated_at = NOW()
                 WHERE id = %s
             RETURNING document
                """,
                (family.owner_id, as_json(family.to_document()), family.id),
            )
            row = cursor.fetchone()
        if row is None:
            raise LookupError("Family not found")
        return _row_to_family(row)

    def upsert_member(self, family_id: str, profile: FamilyMemberProfile, updated_at: datetime) -> None:
        with self._cursor() as cursor:
            cursor.execute(UPSERT_MEMBER_SQL, upsert_member_params(family_id, profile, updated_at))
            if cursor.rowcount == 0:
                raise LookupError("Family not found")

    def rename_family(self, family_id: str, name: str, updated_at: datetime) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE families
                   SET document = jsonb_set(
                           jsonb_set(document, '{name}', to_jsonb(%s::text)),
                           '{updated_at}',
                           to_jsonb(%s::text)
                       ),
                       updated_at = NOW()
                 WHERE id = %s
                """,
                (name, updated_at.isoformat(), family_id),
            )
            if cursor.rowcount == 0:
                raise LookupError("Family not found")


__all__ = ["PostgresFamilyRepository", "UPSERT_MEMBER_SQL", "upsert_member_params"]
