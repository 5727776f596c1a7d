"""
Repository layer

Keeps SQL isolated from the engine and service logic. Nothing here commits;
the service layer owns the transaction.
"""

import json
import sqlite3
from collections import defaultdict
from typing import Optional

from item import ChangeSet, InventoryItem

_ITEM_COLUMNS = (
    "id", "name", "category", "sub_category", "status", "buy_price", "buy_date",
    "vendor", "description", "sell_price", "sell_date", "profit", "fee_amount",
    "has_fee", "payment_type", "platform_sold", "platform_bought",
    "container_sold_date", "is_defective", "is_draft", "is_pc", "is_bundle",
    "cash_on_top", "specs",
)
_BOOL_COLUMNS = ("has_fee", "is_defective", "is_draft", "is_pc", "is_bundle")


def _item_params(item: InventoryItem) -> tuple:
    values = []
    for column in _ITEM_COLUMNS:
        if column == "status":
            values.append(item.status.value)
        elif column == "specs":
            values.append(json.dumps(item.specs, sort_keys=True))
        elif column in _BOOL_COLUMNS:
            values.append(1 if getattr(item, column) else 0)
        else:
            values.append(getattr(item, column))
    return tuple(values)


def _row_to_item(
    row: sqlite3.Row,
    *,
    notes: list[str],
    component_ids: list[str],
    parent_id: Optional[str],
    traded_for_ids: list[str],
    traded_from_id: Optional[str],
) -> InventoryItem:
    fields = {column: row[column] for column in _ITEM_COLUMNS}
    for column in _BOOL_COLUMNS:
        fields[column] = bool(fields[column])
    fields["specs"] = json.loads(fields["specs"] or "{}")
    fields["description"] = fields["description"] or ""
    return InventoryItem(
        **fields,
        notes=notes,
        component_ids=component_ids,
        parent_container_id=parent_id,
        traded_for_ids=traded_for_ids,
        traded_from_id=traded_from_id,
    )


def upsert_item(conn: sqlite3.Connection, item: InventoryItem) -> None:
    # Column list comes from a fixed tuple; values are always bound as parameters.
    placeholders = ", ".join("?" for _ in _ITEM_COLUMNS)
    assignments = ", ".join(f"{c} = excluded.{c}" for c in _ITEM_COLUMNS if c != "id")
    # ON CONFLICT keeps the row (and its cascading link rows) instead of replacing it.
    conn.execute(
        f"""
        INSERT INTO items ({", ".join(_ITEM_COLUMNS)})
        VALUES ({placeholders})
        ON CONFLICT(id) DO UPDATE SET {assignments}, updated_at = datetime('now')
        """,
        _item_params(item),
    )
    # Notes are rewritten wholesale so their order follows the record.
    conn.execute("DELETE FROM item_notes WHERE item_id = ?", (item.id,))
    conn.executemany(
        "INSERT INTO item_notes (item_id, position, note) VALUES (?, ?, ?)",
        [(item.id, pos, note) for pos, note in enumerate(item.notes)],
    )


def replace_components(conn: sqlite3.Connection, composite_id: str, component_ids: list[str]) -> None:
    # Parameterised queries keep ids out of the SQL text.
    conn.execute("DELETE FROM composite_components WHERE composite_id = ?", (composite_id,))
    conn.executemany(
        "INSERT INTO composite_components (composite_id, component_id, position) VALUES (?, ?, ?)",
        [(composite_id, cid, pos) for pos, cid in enumerate(component_ids)],
    )


def replace_trade_links(conn: sqlite3.Connection, source_id: str, acquired_ids: list[str]) -> None:
    # One row per acquired item; the acquired side is unique, so an item has one trade origin.
    conn.execute("DELETE FROM trade_links WHERE source_id = ?", (source_id,))
    conn.executemany(
        "INSERT INTO trade_links (source_id, acquired_id, position) VALUES (?, ?, ?)",
        [(source_id, aid, pos) for pos, aid in enumerate(acquired_ids)],
    )


def delete_item(conn: sqlite3.Connection, item_id: str) -> None:
    # Link and note rows go with it via ON DELETE CASCADE.
    conn.execute("DELETE FROM items WHERE id = ?", (item_id,))


def apply_changes(conn: sqlite3.Connection, changes: ChangeSet) -> None:
    # Deletes first so a released component's link row is gone before re-linking.
    for item_id in changes.deleted:
        delete_item(conn, item_id)
    # Rows first, then links, so link rows never reference a missing composite.
    records = changes.created + changes.updated
    for item in records:
        upsert_item(conn, item)
    for item in records:
        replace_components(conn, item.id, item.component_ids)
        replace_trade_links(conn, item.id, item.traded_for_ids)


def load_items(conn: sqlite3.Connection) -> list[InventoryItem]:
    """All items with their notes and derived link fields, ordered by name."""
    # Link fields are derived from the link tables, never stored on the row.
    notes: dict[str, list[str]] = defaultdict(list)
    for r in conn.execute("SELECT item_id, note FROM item_notes ORDER BY item_id, position"):
        notes[r["item_id"]].append(r["note"])

    components: dict[str, list[str]] = defaultdict(list)
    parents: dict[str, str] = {}
    for r in conn.execute(
        "SELECT composite_id, component_id FROM composite_components ORDER BY composite_id, position"
    ):
        components[r["composite_id"]].append(r["component_id"])
        parents[r["component_id"]] = r["composite_id"]

    acquired: dict[str, list[str]] = defaultdict(list)
    sources: dict[str, str] = {}
    for r in conn.execute("SELECT source_id, acquired_id FROM trade_links ORDER BY source_id, position"):
        acquired[r["source_id"]].append(r["acquired_id"])
        sources[r["acquired_id"]] = r["source_id"]

    # Stable ordering for listings: by name, then id.
    rows = conn.execute(
        f"SELECT {', '.join(_ITEM_COLUMNS)} FROM items ORDER BY name ASC, id ASC"
    ).fetchall()
    return [
        _row_to_item(
            r,
            notes=notes.get(r["id"], []),
            component_ids=components.get(r["id"], []),
            parent_id=parents.get(r["id"]),
            traded_for_ids=acquired.get(r["id"], []),
            traded_from_id=sources.get(r["id"]),
        )
        for r in rows
    ]


def add_log(
    conn: sqlite3.Connection,
    item_id: str,
    actor: str,
    action: str,
    message: str = "",
    *,
    status_before: Optional[str] = None,
    status_after: Optional[str] = None,
) -> int:
    # Parameterised query prevents SQL injection and handles quoting safely.
    cur = conn.execute(
        """
        INSERT INTO logs (item_id, actor, action, message, status_before, status_after)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (item_id, actor, action, message, status_before, status_after),
    )
    if cur.lastrowid is None:
        raise RuntimeError("Failed to create log entry: no rowid returned.")
    return int(cur.lastrowid)


def list_logs(conn: sqlite3.Connection, item_id: Optional[str] = None, limit: int = 50) -> list[sqlite3.Row]:
    # Most recent first, either for one item or across the catalog.
    if item_id is None:
        return conn.execute(
            """
            SELECT id, item_id, timestamp, actor, action, message, status_before, status_after
            FROM logs
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
    return conn.execute(
        """
        SELECT id, item_id, timestamp, actor, action, message, status_before, status_after
        FROM logs
        WHERE item_id = ?
        ORDER BY timestamp DESC, id DESC
        LIMIT ?
        """,
        (item_id, limit),
    ).fetchall()
