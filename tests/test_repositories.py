import sqlite3

import pytest

from bomcalc.domain.errors import CatalogError, RemoteProcedureError
from bomcalc.infra.db import connect
from bomcalc.infra.migrations import apply_migrations
from bomcalc.infra.repositories import (
    AlertRepo,
    AvailabilityRepo,
    CatalogRepo,
    OrderRepo,
    ParamsRepo,
    RemediationRepo,
)


def test_migrations_are_idempotent(db_path):
    apply_migrations(db_path)
    with connect(db_path) as c:
        assert c.execute("PRAGMA user_version;").fetchone()[0] == 2
        cols = [r[1] for r in c.execute("PRAGMA table_info(product);").fetchall()]
    assert "packaging_type" in cols


def test_params_roundtrip(db_path):
    repo = ParamsRepo(db_path)
    assert repo.get("unknown_category_policy", "raw") == "raw"
    repo.set_many([("unknown_category_policy", "unclassified")])
    repo.set_many([("unknown_category_policy", "raw")])
    assert repo.get("unknown_category_policy") == "raw"


def test_formula_items_are_annotated(catalog_db):
    items = CatalogRepo(catalog_db).get_formula_items("FB2")
    by_mat = {r["material_id"]: r for r in items}
    assert by_mat["C"]["material_name"] == "Aroma Cliente"
    assert by_mat["C"]["is_client_supplied"] == 1
    assert by_mat["M"]["category"] == "raw"


def test_formulas_by_name_latest_version_first(catalog_db):
    repo = CatalogRepo(catalog_db)
    assert [r["id"] for r in repo.find_formulas_by_name("beta")] == ["FB2", "FB1"]
    assert [r["id"] for r in repo.find_formulas_by_name("Delt", exact=False)] == ["FD"]


def test_product_search_escapes_wildcards(catalog_db):
    repo = CatalogRepo(catalog_db)
    assert repo.find_products_by_name("%", exact=False) == []
    assert repo.get_product("nope") is None


def test_order_lines_keep_sequence(db_path):
    repo = OrderRepo(db_path)
    repo.replace_lines("PO-1", [{"product_name": "Z", "quantity": 1}, {"product_name": "A", "quantity": 2}])
    repo.replace_lines("PO-2", [{"id": "1", "product_name": "Q", "quantity": 1}])
    assert [r["product_name"] for r in repo.get_lines("PO-1")] == ["Z", "A"]
    assert [r["id"] for r in repo.get_lines("PO-1")] == ["PO-1-1", "PO-1-2"]

    repo.replace_lines("PO-1", [{"id": "1", "product_name": "B", "quantity": 3}])
    assert [r["product_name"] for r in repo.get_lines("PO-1")] == ["B"]
    assert [r["product_name"] for r in repo.get_lines("PO-2")] == ["Q"]


def test_availability_snapshot(db_path):
    repo = AvailabilityRepo(db_path)
    repo.upsert([{"material_id": "M", "internal_qty": 10}])
    repo.upsert([{"material_id": "M", "client_qty": 2, "internal_qty": 12}])
    snap = repo.snapshot()
    assert snap["M"]["client_qty"] == 2
    assert snap["M"]["internal_qty"] == 12


def test_unmigrated_store_raises_catalog_error(tmp_path):
    path = tmp_path / "empty.sqlite"
    sqlite3.connect(str(path)).close()
    with pytest.raises(CatalogError) as exc:
        CatalogRepo(str(path)).find_formulas_by_name("Beta")
    assert exc.value.operation == "find_formulas_by_name"
    assert isinstance(exc.value.__cause__, sqlite3.Error)

    with pytest.raises(CatalogError):
        AvailabilityRepo(str(path)).snapshot()


def test_alerts_and_remediation_requests(db_path):
    alerts = AlertRepo(db_path)
    assert alerts.insert_many([]) == 0
    alerts.insert_many([{"order_id": "PO-1", "subject": "Resina", "shortfall": 15, "suggestion": "purchase"}])
    rows = alerts.list_for_order("PO-1")
    assert rows[0]["subject"] == "Resina"
    assert rows[0]["created_at"]

    rem = RemediationRepo(db_path)
    rem.generate_requisitions_for_shortages("PO-1")
    assert [r["kind"] for r in rem.list_for_order("PO-1")] == ["purchase"]


def test_remediation_store_failure_is_remote_error(tmp_path):
    path = tmp_path / "empty.sqlite"
    with pytest.raises(RemoteProcedureError) as exc:
        RemediationRepo(str(path)).generate_production_for_shortages("PO-1")
    assert exc.value.procedure == "generate_production_for_shortages"
