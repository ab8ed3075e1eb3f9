"""PostgreSQL persistence for lists and list items."""
from __future__ import annotations

from typing import List, Optional

from ..db import PostgresRepository, as_json
from .models import ListItem, ListRecord


def _row_to_list(row: dict) -> ListRecord:
    return ListRecord.model_validate(row["document"])


def _row_to_item(row: dict) -> ListItem:
    return ListItem.model_validate(row["document"])


class PostgresListRepository(PostgresRepository):
    def create_list(self, record: ListRecord) -> ListRecord:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO lists (id, family_id, owner_id, document, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING document
                """,
                (
                    record.id,
                    record.family_id,
                    record.owner_id,
                    as_json(record.model_dump(mode="json")),
                    record.created_at,
                    record.updated_at,
                ),
            )
            row = cursor.fetchone()
        return _row_to_list(row)

    def find_list(self, list_id: str) -> Optional[ListRecord]:
        with self._cursor() as cursor:
            cursor.execute("SELECT document FROM lists WHERE id = %s", (list_id,))
            row = cursor.fetchone()
        return _row_to_list(row) if row else None

    def list_family_lists(self, family_id: str) -> List[ListRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT document FROM lists WHERE family_id = %s ORDER BY created_at",
                (family_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_list(row) for row in rows]

    def update_list(self, record: ListRecord) -> ListRecord:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE lists
                   SET document = %s, updated_at = %s
                 WHERE id = %s
             RETURNING document
                """,
                (as_json(record.model_dump(mode="json")), record.updated_at, record.id),
            )
            row = cursor.fetchone()
        if row is None:
            raise LookupError("List not found")
        return _row_to_list(row)

    def delete_list(self, list_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM list_items WHERE list_id = %s", (list_id,))
            cursor.execute("DELETE FROM lists WHERE id = %s", (list_id,))

    def add_item(self, item: ListItem) -> ListItem:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO list_items (id, list_id, document, created_at)
                VALUES (%s, %s, %s, %s)
                RETURNING document
                """,
                (item.id, item.list_id, as_json(item.model_dump(mode="json")), item.created_at),
            )
            row = cursor.fetchone()
        return _row_to_item(row)

    def find_item(self, list_id: str, item_id: str) -> Optional[ListItem]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT document FROM list_items WHERE list_id = %s AND id = %s",
                (list_id, item_id),
            )
            row = cursor.fetchone()
        return _row_to_item(row) if row else None

    def update_item(self, item: ListItem) -> ListItem:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE list_items
                   SET document = %s
                 WHERE list_id = %s AND id = %s
             RETURNING document
                """,
                (as_json(item.model_dump(mode="json")), item.list_id, item.id),
            )
            row = cursor.fetchone()
        if row is None:
            raise LookupError("Item not found")
        return _row_to_item(row)

    def delete_item(self, list_id: str, item_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM list_items WHERE list_id = %s AND id = %s",
                (list_id, item_id),
            )

    def list_items(self, list_id: str) -> List[ListItem]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT document FROM list_items WHERE list_id = %s ORDER BY created_at",
                (list_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_item(row) for row in rows]

    def count_items(self, list_id: str) -> int:
        with self._cursor() as cursor:
            cursor.execute("SELECT COUNT(*) AS total FROM list_items WHERE list_id = %s", (list_id,))
            row = cursor.fetchone()
        return int(row["total"]) if row else 0


__all__ = ["PostgresListRepository"]
