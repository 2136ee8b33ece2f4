import pytest

from bomcalc.infra.migrations import apply_migrations
from bomcalc.infra.repositories import CatalogWriter


@pytest.fixture
def db_path(tmp_path):
    p = tmp_path / "bomcalc_test.sqlite"
    apply_migrations(str(p))
    return str(p)


@pytest.fixture
def catalog_db(db_path):
    """Catálogo pequeno cobrindo vínculo direto, fallback por nome e lacunas."""
    w = CatalogWriter(db_path)
    w.upsert_materials([
        {"id": "M", "name": "Resina Base", "category": "raw", "is_client_supplied": 0},
        {"id": "P", "name": "Frasco 100ml", "category": "Packaging", "is_client_supplied": 0},
        {"id": "C", "name": "Aroma Cliente", "category": "RAW", "is_client_supplied": 1},
        {"id": "X", "name": "Pigmento", "category": "additive", "is_client_supplied": 0},
    ])
    w.upsert_formulas([
        {"id": "FA", "name": "Alpha", "version": 1},
        {"id": "FB1", "name": "Beta", "version": 1},
        {"id": "FB2", "name": "Beta", "version": 2},
        {"id": "FD", "name": "Delta Kit", "version": 1},
        {"id": "FE", "name": "Empty", "version": 1},
    ])
    w.replace_formula_items("FA", [
        {"material_id": "M", "qty_per_unit": 2.0, "uom": "kg"},
        {"material_id": "P", "qty_per_unit": 1, "uom": "un"},
    ])
    w.replace_formula_items("FB1", [{"material_id": "M", "qty_per_unit": 9.0, "uom": "kg"}])
    w.replace_formula_items("FB2", [
        {"material_id": "M", "qty_per_unit": 1.0, "uom": "kg"},
        {"material_id": "C", "qty_per_unit": 0.5, "uom": "kg"},
    ])
    w.replace_formula_items("FD", [{"material_id": "X", "qty_per_unit": 1.0, "uom": "g"}])
    w.upsert_products([
        {"id": "A", "name": "Product A", "formula_id": "FA"},
        {"id": "B", "name": "Product B", "formula_name": "Beta"},
        {"id": "D", "name": "Delta", "formula_id": "FD", "packaging_type": "kit"},
        {"id": "E", "name": "Empty Thing", "formula_id": "FE"},
        {"id": "G", "name": "Gamma"},
        {"id": "H", "name": "Alpha"},
    ])
    return db_path
