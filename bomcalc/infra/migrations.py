# bomcalc/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: catálogo (produto, fórmula, itens, material), pedido, disponibilidade,
    alertas e requisições de remediação
V2: adiciona `packaging_type` ao produto (regra de kit/bundle)
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Parâmetros K/V
    """
    CREATE TABLE IF NOT EXISTS params (
        name TEXT PRIMARY KEY,
        value TEXT
    );
    """,
    # Materiais (matéria-prima / embalagem)
    """
    CREATE TABLE IF NOT EXISTS material (
        id TEXT PRIMARY KEY,
        name TEXT,
        category TEXT,                      -- 'raw' | 'packaging' (livre na origem)
        is_client_supplied INTEGER DEFAULT 0
    );
    """,
    # Fórmulas versionadas
    """
    CREATE TABLE IF NOT EXISTS formula (
        id TEXT PRIMARY KEY,
        name TEXT,
        version INTEGER DEFAULT 0
    );
    """,
    # Itens de fórmula
    """
    CREATE TABLE IF NOT EXISTS formula_item (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        formula_id TEXT NOT NULL,
        material_id TEXT NOT NULL,
        qty_per_unit REAL,
        uom TEXT,
        FOREIGN KEY (formula_id) REFERENCES formula(id) ON DELETE CASCADE,
        FOREIGN KEY (material_id) REFERENCES material(id)
    );
    """,
    # Produtos (vínculo direto opcional com a fórmula)
    """
    CREATE TABLE IF NOT EXISTS product (
        id TEXT PRIMARY KEY,
        name TEXT,
        formula_id TEXT,
        formula_name TEXT
    );
    """,
    # Linhas de pedido
    """
    CREATE TABLE IF NOT EXISTS order_line (
        id TEXT NOT NULL,
        order_id TEXT NOT NULL,
        seq INTEGER DEFAULT 0,
        product_id TEXT,
        product_name TEXT,
        quantity REAL,
        PRIMARY KEY (order_id, id)
    );
    """,
    # Disponibilidade por material (cliente x interno)
    """
    CREATE TABLE IF NOT EXISTS material_availability (
        material_id TEXT PRIMARY KEY,
        client_qty REAL DEFAULT 0,
        internal_qty REAL DEFAULT 0
    );
    """,
    # Alertas de "lembrar depois"
    """
    CREATE TABLE IF NOT EXISTS allocation_alert (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL,
        subject TEXT,
        material_id TEXT,
        product_id TEXT,
        shortfall REAL,
        suggestion TEXT,
        created_at TEXT
    );
    """,
    # Requisições de remediação disparadas (OP / requisição de compra)
    """
    CREATE TABLE IF NOT EXISTS remediation_request (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL,
        kind TEXT NOT NULL,                 -- 'production' | 'purchase'
        created_at TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS ix_order_line_order ON order_line(order_id, seq);",
    "CREATE INDEX IF NOT EXISTS ix_formula_item_formula ON formula_item(formula_id);",
]


def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Adiciona coluna se não existir."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]  # r[1] é o nome da coluna
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    _ensure_column(conn, "product", "packaging_type", "packaging_type TEXT")


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
