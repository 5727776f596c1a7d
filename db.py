"""
SQLite database utilities and schema initialisation.

Composition and trade links each live in one table only; the per-item
back-references (parent_container_id, traded_from_id) are derived from
those tables when items are loaded.
"""

from __future__ import annotations

import sqlite3


def get_connection(db_path: str) -> sqlite3.Connection:
    """
    Creates a SQLite connection with consistent settings.

    - Row factory enabled for dict-like access
    - Foreign keys enabled (off by default in sqlite)
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Creates tables if they do not already exist."""
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS items (
            id                  TEXT PRIMARY KEY,
            name                TEXT NOT NULL,
            category            TEXT NOT NULL,
            sub_category        TEXT,
            status              TEXT NOT NULL,
            buy_price           REAL NOT NULL CHECK (buy_price >= 0),
            buy_date            TEXT,
            vendor              TEXT,
            description         TEXT NOT NULL DEFAULT '',
            sell_price          REAL,
            sell_date           TEXT,
            profit              REAL,
            fee_amount          REAL,
            has_fee             INTEGER NOT NULL DEFAULT 0,
            payment_type        TEXT,
            platform_sold       TEXT,
            platform_bought     TEXT,
            container_sold_date TEXT,
            is_defective        INTEGER NOT NULL DEFAULT 0,
            is_draft            INTEGER NOT NULL DEFAULT 0,
            is_pc               INTEGER NOT NULL DEFAULT 0,
            is_bundle           INTEGER NOT NULL DEFAULT 0,
            cash_on_top         REAL,
            specs               TEXT NOT NULL DEFAULT '{}',
            created_at          TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at          TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS item_notes (
            item_id   TEXT NOT NULL,
            position  INTEGER NOT NULL,
            note      TEXT NOT NULL,
            PRIMARY KEY (item_id, position),
            FOREIGN KEY(item_id) REFERENCES items(id) ON DELETE CASCADE
        );

        -- A component belongs to at most one composite.
        CREATE TABLE IF NOT EXISTS composite_components (
            composite_id  TEXT NOT NULL,
            component_id  TEXT NOT NULL UNIQUE,
            position      INTEGER NOT NULL,
            PRIMARY KEY (composite_id, component_id),
            FOREIGN KEY(composite_id) REFERENCES items(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS trade_links (
            source_id    TEXT NOT NULL,
            acquired_id  TEXT NOT NULL UNIQUE,
            position     INTEGER NOT NULL,
            PRIMARY KEY (source_id, acquired_id),
            FOREIGN KEY(source_id) REFERENCES items(id) ON DELETE CASCADE
        );

        -- No FK: the audit trail outlives deleted composites.
        CREATE TABLE IF NOT EXISTS logs (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            item_id         TEXT NOT NULL,
            timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
            actor           TEXT NOT NULL,
            action          TEXT NOT NULL,
            message         TEXT NOT NULL DEFAULT '',
            status_before   TEXT,
            status_after    TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_logs_item_time
            ON logs(item_id, timestamp);
        """
    )
    conn.commit()
