# bomcalc/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

O SQLite aqui é o stand-in local do data store hospedado; cada classe
implementa um dos contratos externos que o motor consome:

- ParamsRepo          -> parâmetros K/V (configuração em tempo de execução)
- CatalogRepo         -> leitura do catálogo (produtos, fórmulas, itens)
- CatalogWriter       -> carga do catálogo (importação de planilhas)
- OrderRepo           -> linhas de pedido
- AvailabilityRepo    -> snapshot de disponibilidade (cliente x interno)
- AlertRepo           -> caminho de escrita do "lembrar depois"
- RemediationRepo     -> gatilhos de OP / requisição de compra

Falhas de leitura do catálogo viram ``CatalogError``; falhas dos gatilhos
viram ``RemoteProcedureError``. "Não encontrado" nunca é erro.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .db import connect
from bomcalc.domain.errors import CatalogError, RemoteProcedureError


# -------------------------
# Helpers
# -------------------------

def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    if is_dataclass(row):
        return asdict(row)
    raise TypeError("row must be dict or dataclass")


def _rows(cur) -> List[Dict[str, Any]]:
    cols = [d[0] for d in cur.description]
    return [dict(zip(cols, row)) for row in cur.fetchall()]


def _like_escape(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


# -------------------------
# Params
# -------------------------

class ParamsRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def set_many(self, items: Iterable[Tuple[str, str]]) -> None:
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO params (name, value)
                VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET value=excluded.value
                """,
                list(items),
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with connect(self.db_path) as c:
            row = c.execute("SELECT value FROM params WHERE name = ?", (key,)).fetchone()
            return row[0] if row else default


# -------------------------
# Catálogo (somente leitura)
# -------------------------

class CatalogRepo:
    """Interface de leitura do catálogo: produtos, fórmulas e itens."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _query(self, operation: str, sql: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        try:
            with connect(self.db_path, readonly=True) as c:
                return _rows(c.execute(sql, params))
        except sqlite3.Error as e:
            raise CatalogError(operation, str(e)) from e

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query(
            "get_product",
            "SELECT id, name, formula_id, formula_name, packaging_type FROM product WHERE id = ?",
            (str(product_id),),
        )
        return rows[0] if rows else None

    def find_products_by_name(self, name: str, exact: bool = True) -> List[Dict[str, Any]]:
        """Busca produtos por nome (case-insensitive); ``exact=False`` usa substring."""
        if exact:
            sql = """SELECT id, name, formula_id, formula_name, packaging_type
                     FROM product WHERE lower(trim(name)) = lower(trim(?))
                     ORDER BY id"""
            params = (name,)
        else:
            sql = """SELECT id, name, formula_id, formula_name, packaging_type
                     FROM product WHERE name LIKE ? ESCAPE '\\'
                     ORDER BY length(name), id"""
            params = (f"%{_like_escape(name.strip())}%",)
        return self._query("find_products_by_name", sql, params)

    def get_formula(self, formula_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query(
            "get_formula",
            "SELECT id, name, version FROM formula WHERE id = ?",
            (str(formula_id),),
        )
        return rows[0] if rows else None

    def find_formulas_by_name(self, pattern: str, exact: bool = True) -> List[Dict[str, Any]]:
        """Fórmulas por nome, ordenadas por versão decrescente (depois id)."""
        if exact:
            where, param = "lower(trim(name)) = lower(trim(?))", pattern
        else:
            where, param = "name LIKE ? ESCAPE '\\'", f"%{_like_escape(pattern.strip())}%"
        return self._query(
            "find_formulas_by_name",
            f"""SELECT id, name, version FROM formula
                WHERE {where}
                ORDER BY COALESCE(version, 0) DESC, id ASC""",
            (param,),
        )

    def get_formula_items(self, formula_id: str) -> List[Dict[str, Any]]:
        """Itens da fórmula, anotados com nome, categoria e origem do material."""
        return self._query(
            "get_formula_items",
            """
            SELECT fi.formula_id,
                   fi.material_id,
                   fi.qty_per_unit,
                   fi.uom,
                   m.name               AS material_name,
                   m.category           AS category,
                   m.is_client_supplied AS is_client_supplied
            FROM formula_item fi
            LEFT JOIN material m ON m.id = fi.material_id
            WHERE fi.formula_id = ?
            ORDER BY fi.id
            """,
            (str(formula_id),),
        )


class CatalogWriter:
    """Carga do catálogo (usada pela importação de planilhas e pelos testes)."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert_materials(self, rows: Iterable[Dict[str, Any]]) -> int:
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO material (id, name, category, is_client_supplied)
                VALUES (:id, :name, :category, :is_client_supplied)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    category=excluded.category,
                    is_client_supplied=excluded.is_client_supplied
                """,
                [{"category": None, "is_client_supplied": 0, **r} for r in rows],
            )
        return len(rows)

    def upsert_formulas(self, rows: Iterable[Dict[str, Any]]) -> int:
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO formula (id, name, version)
                VALUES (:id, :name, :version)
                ON CONFLICT(id) DO UPDATE SET name=excluded.name, version=excluded.version
                """,
                [{"version": 0, **r} for r in rows],
            )
        return len(rows)

    def replace_formula_items(self, formula_id: str, rows: Iterable[Dict[str, Any]]) -> int:
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.execute("DELETE FROM formula_item WHERE formula_id = ?", (str(formula_id),))
            c.executemany(
                """
                INSERT INTO formula_item (formula_id, material_id, qty_per_unit, uom)
                VALUES (:formula_id, :material_id, :qty_per_unit, :uom)
                """,
                [{"uom": None, "qty_per_unit": None, **r, "formula_id": str(formula_id)} for r in rows],
            )
        return len(rows)

    def upsert_products(self, rows: Iterable[Dict[str, Any]]) -> int:
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO product (id, name, formula_id, formula_name, packaging_type)
                VALUES (:id, :name, :formula_id, :formula_name, :packaging_type)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    formula_id=excluded.formula_id,
                    formula_name=excluded.formula_name,
                    packaging_type=excluded.packaging_type
                """,
                [{"formula_id": None, "formula_name": None, "packaging_type": None, **r} for r in rows],
            )
        return len(rows)


# -------------------------
# Pedido
# -------------------------

class OrderRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def replace_lines(self, order_id: str, rows: Iterable[Dict[str, Any]]) -> int:
        """Regrava as linhas do pedido preservando a ordem recebida."""
        payload = []
        for seq, r in enumerate(_as_dict(r) for r in rows):
            payload.append({
                "id": str(r.get("id") or f"{order_id}-{seq + 1}"),
                "order_id": str(order_id),
                "seq": seq,
                "product_id": r.get("product_id"),
                "product_name": r.get("product_name"),
                "quantity": r.get("quantity"),
            })
        with connect(self.db_path) as c:
            c.execute("DELETE FROM order_line WHERE order_id = ?", (str(order_id),))
            c.executemany(
                """
                INSERT INTO order_line (id, order_id, seq, product_id, product_name, quantity)
                VALUES (:id, :order_id, :seq, :product_id, :product_name, :quantity)
                """,
                payload,
            )
        return len(payload)

    def get_lines(self, order_id: str) -> List[Dict[str, Any]]:
        try:
            with connect(self.db_path, readonly=True) as c:
                return _rows(c.execute(
                    """SELECT id, product_id, product_name, quantity
                       FROM order_line WHERE order_id = ?
                       ORDER BY seq, id""",
                    (str(order_id),),
                ))
        except sqlite3.Error as e:
            raise CatalogError("get_order_lines", str(e)) from e


# -------------------------
# Disponibilidade
# -------------------------

class AvailabilityRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Dict[str, Any]]) -> None:
        rows = [{"client_qty": 0, "internal_qty": 0, **_as_dict(r)} for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO material_availability (material_id, client_qty, internal_qty)
                VALUES (:material_id, :client_qty, :internal_qty)
                ON CONFLICT(material_id) DO UPDATE SET
                    client_qty=excluded.client_qty,
                    internal_qty=excluded.internal_qty
                """,
                rows,
            )

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """material_id -> {client_qty, internal_qty} (valores brutos)."""
        try:
            with connect(self.db_path, readonly=True) as c:
                cur = c.execute("SELECT material_id, client_qty, internal_qty FROM material_availability")
                return {str(r["material_id"]): r for r in _rows(cur)}
        except sqlite3.Error as e:
            raise CatalogError("availability_snapshot", str(e)) from e


# -------------------------
# Alertas (defer / escalate)
# -------------------------

class AlertRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def insert_many(self, rows: Iterable[Dict[str, Any]]) -> int:
        rows = [_as_dict(r) for r in rows]
        if not rows:
            return 0
        created_at = _now_iso()
        payload = [
            {
                "order_id": str(r.get("order_id")),
                "subject": r.get("subject"),
                "material_id": r.get("material_id"),
                "product_id": r.get("product_id"),
                "shortfall": r.get("shortfall"),
                "suggestion": r.get("suggestion"),
                "created_at": created_at,
            }
            for r in rows
        ]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO allocation_alert
                    (order_id, subject, material_id, product_id, shortfall, suggestion, created_at)
                VALUES
                    (:order_id, :subject, :material_id, :product_id, :shortfall, :suggestion, :created_at)
                """,
                payload,
            )
        return len(payload)

    def list_for_order(self, order_id: str) -> List[Dict[str, Any]]:
        with connect(self.db_path) as c:
            return _rows(c.execute(
                """SELECT order_id, subject, material_id, product_id, shortfall, suggestion, created_at
                   FROM allocation_alert WHERE order_id = ? ORDER BY id""",
                (str(order_id),),
            ))


# -------------------------
# Gatilhos de remediação
# -------------------------

class RemediationRepo:
    """Implementação local dos dois procedimentos de remediação.

    Cada chamada registra uma requisição por pedido; o processamento real
    (criar OPs / requisições) fica a cargo de quem consome a tabela.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _record(self, procedure: str, order_id: str, kind: str) -> None:
        try:
            with connect(self.db_path) as c:
                c.execute(
                    "INSERT INTO remediation_request (order_id, kind, created_at) VALUES (?, ?, ?)",
                    (str(order_id), kind, _now_iso()),
                )
        except sqlite3.Error as e:
            raise RemoteProcedureError(procedure, str(e)) from e

    def generate_production_for_shortages(self, order_id: str) -> None:
        self._record("generate_production_for_shortages", order_id, "production")

    def generate_requisitions_for_shortages(self, order_id: str) -> None:
        self._record("generate_requisitions_for_shortages", order_id, "purchase")

    def list_for_order(self, order_id: str) -> List[Dict[str, Any]]:
        with connect(self.db_path) as c:
            return _rows(c.execute(
                "SELECT order_id, kind, created_at FROM remediation_request WHERE order_id = ? ORDER BY id",
                (str(order_id),),
            ))
