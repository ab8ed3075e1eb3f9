"""PostgreSQL persistence for the plan catalog."""
from __future__ import annotations

from typing import List, Optional

from ..db import PostgresRepository, as_json
from .catalog import PlanDefinition


class PostgresPlanRepository(PostgresRepository):
    """Stores plan documents seeded from :data:`PLAN_CATALOG`."""

    def upsert_plan(self, plan: PlanDefinition) -> PlanDefinition:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO plans (id, document, updated_at)
                VALUES (%s, %s, NOW())
                ON CONFLICT (id) DO UPDATE SET
                    document = EXCLUDED.document,
                    updated_at = NOW()
                RETURNING document
                """,
                (plan.id, as_json(plan.to_document())),
            )
            row = cursor.fetchone()
        return PlanDefinition.from_document(row["document"])

    def get_plan(self, plan_id: str) -> Optional[PlanDefinition]:
        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM plans WHERE id = %s", (plan_id,))
            row = cursor.fetchone()
        return PlanDefinition.from_document(row["document"]) if row else None

    def list_plans(self) -> List[PlanDefinition]:
        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM plans ORDER BY id")
            rows = cursor.fetchall()
        return [PlanDefinition.from_document(row["document"]) for row in rows]


__all__ = ["PostgresPlanRepository"]
