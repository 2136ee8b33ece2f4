# bomcalc/usecases/import_data.py
"""
UC: importar planilhas para o banco local.
- run_import_catalog(path): materiais, fórmulas, itens, produtos e disponibilidade.
- run_import_order(order_id, path): linhas de um pedido (regrava o pedido).

Obs.:
- Aplica as migrações antes de gravar.
- Quantidades de disponibilidade e qtd por unidade passam pelo parse-or-zero;
  quantidades das linhas de pedido são gravadas como vieram (o motor converte).
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List

from bomcalc.config import DB_PATH
from bomcalc.adapters.parsers import normalize_str, to_bool, to_qty
from bomcalc.adapters.xlsx_loader import load_catalog_from_xlsx, load_order_lines_from_xlsx
from bomcalc.infra.migrations import apply_migrations
from bomcalc.infra.repositories import AvailabilityRepo, CatalogWriter, OrderRepo
from bomcalc.infra.logger import (
    log_database_operation,
    log_file_operation,
    log_system_event,
    log_transaction,
    print_system,
)


def import_catalog(data: Dict[str, List[Dict[str, Any]]], db_path: str = DB_PATH) -> Dict[str, int]:
    """Grava um catálogo já carregado (dict por entidade) no banco."""
    writer = CatalogWriter(db_path)
    counts: Dict[str, int] = {}

    materials = [
        {
            "id": r["id"],
            "name": normalize_str(r.get("name")),
            "category": normalize_str(r.get("category")),
            "is_client_supplied": 1 if to_bool(r.get("is_client_supplied")) else 0,
        }
        for r in data.get("materials", []) if normalize_str(r.get("id"))
    ]
    counts["materials"] = writer.upsert_materials(materials)
    log_database_operation("material", "UPSERT", counts["materials"])

    formulas = [
        {"id": r["id"], "name": normalize_str(r.get("name")), "version": int(to_qty(r.get("version")))}
        for r in data.get("formulas", []) if normalize_str(r.get("id"))
    ]
    counts["formulas"] = writer.upsert_formulas(formulas)
    log_database_operation("formula", "UPSERT", counts["formulas"])

    by_formula: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for r in data.get("formula_items", []):
        fid, mid = normalize_str(r.get("formula_id")), normalize_str(r.get("material_id"))
        if not fid or not mid:
            continue
        by_formula[fid].append({
            "material_id": mid,
            "qty_per_unit": to_qty(r.get("qty_per_unit")),
            "uom": normalize_str(r.get("uom")),
        })
    counts["formula_items"] = sum(writer.replace_formula_items(fid, rows) for fid, rows in by_formula.items())
    log_database_operation("formula_item", "REPLACE", counts["formula_items"], formulas=len(by_formula))

    products = [
        {
            "id": r["id"],
            "name": normalize_str(r.get("name")),
            "formula_id": normalize_str(r.get("formula_id")),
            "formula_name": normalize_str(r.get("formula_name")),
            "packaging_type": normalize_str(r.get("packaging_type")),
        }
        for r in data.get("products", []) if normalize_str(r.get("id"))
    ]
    counts["products"] = writer.upsert_products(products)
    log_database_operation("product", "UPSERT", counts["products"])

    availability = [
        {
            "material_id": r["material_id"],
            "client_qty": to_qty(r.get("client_qty")),
            "internal_qty": to_qty(r.get("internal_qty")),
        }
        for r in data.get("availability", []) if normalize_str(r.get("material_id"))
    ]
    AvailabilityRepo(db_path).upsert(availability)
    counts["availability"] = len(availability)
    log_database_operation("material_availability", "UPSERT", counts["availability"])
    return counts


def run_import_catalog(path: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Lê a planilha de catálogo e grava todas as abas reconhecidas."""
    log_system_event("import_catalog_start", {"file_path": path})
    log_file_operation("import", path)
    try:
        apply_migrations(db_path)
        data = load_catalog_from_xlsx(path)
        log_file_operation("import", path, rows_processed=sum(len(v) for v in data.values()))

        counts = import_catalog(data, db_path)
        print_system(f">> Catálogo importado: {counts}")

        result = {"arquivo": path, **counts}
        log_transaction("import_catalog", {"file": path}, result=result)
        log_system_event("import_catalog_success", {"file_path": path, **counts})
        return result
    except Exception as e:
        error_msg = str(e)
        log_transaction("import_catalog", {"file": path}, error=error_msg)
        log_system_event("import_catalog_error", {"file_path": path, "error": error_msg}, level="error")
        raise


def run_import_order(order_id: str, path: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Lê um XLSX de linhas e regrava o pedido ``order_id``."""
    log_system_event("import_order_start", {"order_id": order_id, "file_path": path})
    log_file_operation("import", path)
    try:
        apply_migrations(db_path)
        rows = load_order_lines_from_xlsx(path)
        log_file_operation("import", path, rows_processed=len(rows))

        n = OrderRepo(db_path).replace_lines(order_id, rows)
        log_database_operation("order_line", "REPLACE", n, order_id=order_id)

        result = {"arquivo": path, "order_id": order_id, "linhas_inseridas": n}
        log_transaction("import_order", {"order_id": order_id, "file": path}, result=result)
        log_system_event("import_order_success", {"order_id": order_id, "rows_inserted": n})
        return result
    except Exception as e:
        error_msg = str(e)
        log_transaction("import_order", {"order_id": order_id, "file": path}, error=error_msg)
        log_system_event("import_order_error", {"order_id": order_id, "error": error_msg}, level="error")
        raise
