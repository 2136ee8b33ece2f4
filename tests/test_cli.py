import json
from pathlib import Path

from typer.testing import CliRunner

from bomcalc.adapters.cli import app
from bomcalc.infra import logger
from bomcalc.infra.repositories import AlertRepo, AvailabilityRepo, OrderRepo, RemediationRepo

runner = CliRunner()


def test_cli_migrate_and_params(tmp_path: Path):
    db_path = tmp_path / "bomcalc_test.sqlite"
    result = runner.invoke(app, ["migrate", "--db", str(db_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["params", "set", "--db", str(db_path), "--unknown-category-policy", "unclassified"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["params", "get", "unknown_category_policy", "--db", str(db_path)])
    assert result.exit_code == 0
    assert result.stdout.strip() == "unclassified"

    result = runner.invoke(app, ["params", "show", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "bundle_packaging_types" in result.stdout


def test_cli_params_set_rejects_bad_policy(tmp_path: Path):
    db_path = tmp_path / "bomcalc_test.sqlite"
    result = runner.invoke(app, ["params", "set", "--db", str(db_path), "--unknown-category-policy", "misc"])
    assert result.exit_code == 1
    result = runner.invoke(app, ["params", "set", "--db", str(db_path)])
    assert result.exit_code == 1


def test_cli_calc_json(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [
        {"product_id": "A", "quantity": 10},
        {"product_name": "Product B", "quantity": 5},
        {"product_name": "Gamma", "quantity": 7},
    ])
    result = runner.invoke(app, ["calc", "PO-1", "--json", "--db", catalog_db])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    raw = {r["material_id"]: r["required_qty"] for r in data["raw"]}
    assert raw["M"] == 25.0
    assert data["missing_formulas"][0]["product_name"] == "Gamma"
    assert data["missing_formulas"][0]["quantity"] == 7.0


def test_cli_calc_table(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [{"product_id": "A", "quantity": 10}])
    result = runner.invoke(app, ["calc", "PO-1", "--db", catalog_db])
    assert result.exit_code == 0, result.output
    assert "Resina Base" in result.stdout


def test_cli_calc_missing_store_fails_cleanly(tmp_path: Path):
    result = runner.invoke(app, ["calc", "PO-1", "--db", str(tmp_path / "missing.sqlite")])
    assert result.exit_code == 1
    assert "CATALOG_UNAVAILABLE" in result.stdout


def test_cli_allocate_json(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [{"product_id": "A", "quantity": 10}])
    AvailabilityRepo(catalog_db).upsert([{"material_id": "M", "internal_qty": 10}, {"material_id": "P", "internal_qty": 10}])
    result = runner.invoke(app, ["allocate", "PO-1", "--json", "--db", catalog_db])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["summary"]["status"] == "partial"
    assert data["summary"]["total_shortfall"] == 10.0
    assert data["blocked"] == []


def test_cli_normalize(tmp_path: Path):
    path = tmp_path / "resp.json"
    path.write_text(json.dumps({"status": "allocated", "lines": [{"material_name": "M", "required": 5, "allocated": 2}]}))
    result = runner.invoke(app, ["normalize", str(path), "--order-id", "PO-3", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["order_id"] == "PO-3"
    assert data["status"] == "partial"
    assert data["upstream_status"] == "allocated"


def test_cli_resolve_confirm(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [{"product_id": "A", "quantity": 10}])
    AvailabilityRepo(catalog_db).upsert([{"material_id": "M", "internal_qty": 10}, {"material_id": "P", "internal_qty": 10}])
    result = runner.invoke(app, ["resolve", "PO-1", "--action", "M=purchase", "--db", catalog_db])
    assert result.exit_code == 0, result.output
    assert [r["kind"] for r in RemediationRepo(catalog_db).list_for_order("PO-1")] == ["purchase"]


def test_cli_resolve_incomplete_fails(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [{"product_id": "A", "quantity": 10}])
    result = runner.invoke(app, ["resolve", "PO-1", "--action", "M=skip", "--db", catalog_db])
    assert result.exit_code == 1
    assert "SESSION_INCOMPLETE" in result.stdout
    assert RemediationRepo(catalog_db).list_for_order("PO-1") == []


def test_cli_resolve_defer(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [{"product_id": "A", "quantity": 10}])
    result = runner.invoke(app, ["resolve", "PO-1", "--defer", "--db", catalog_db])
    assert result.exit_code == 0, result.output
    assert len(AlertRepo(catalog_db).list_for_order("PO-1")) == 2


def test_cli_resolve_bad_action_syntax(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [{"product_id": "A", "quantity": 10}])
    result = runner.invoke(app, ["resolve", "PO-1", "--action", "M", "--db", catalog_db])
    assert result.exit_code == 1


def test_cli_resolve_lists_session_keys(catalog_db):
    OrderRepo(catalog_db).replace_lines("PO-1", [{"product_id": "A", "quantity": 10}])
    result = runner.invoke(app, ["resolve", "PO-1", "--defer", "--db", catalog_db])
    assert result.exit_code == 0, result.output
    assert "Faltas" in result.stdout
    assert "key" in result.stdout


def test_cli_logs_disabled(monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    monkeypatch.setattr(logger, "ENABLE_OUTPUT", False)
    result = runner.invoke(app, ["logs", "allocations"])
    assert result.exit_code == 0, result.output
    assert "BOMCALC_LOGGING" in result.stdout


def test_cli_logs_shows_tail(tmp_path: Path, monkeypatch):
    log_file = tmp_path / "alloc.log"
    log_file.write_text("linha-1\nlinha-2\nlinha-3\n", encoding="utf-8")
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    monkeypatch.setattr(logger, "LOG_FILES", {**logger.LOG_FILES, "allocations": log_file})
    result = runner.invoke(app, ["logs", "allocations", "--lines", "2"])
    assert result.exit_code == 0, result.output
    assert "linha-3" in result.stdout
    assert "linha-1" not in result.stdout


def test_cli_logs_unknown_type():
    result = runner.invoke(app, ["logs", "nope"])
    assert result.exit_code == 1
