import pytest

from bomcalc.domain.errors import CatalogError
from bomcalc.domain.models import MaterialCategory
from bomcalc.infra.repositories import CatalogRepo
from bomcalc.usecases.materials_calculator import aggregate_requirements
from bomcalc.usecases.resolve_formula import FormulaResolver


class CountingCatalog:
    """Envolve um catálogo contando as chamadas por método."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = {}

    def __getattr__(self, name):
        target = getattr(self.inner, name)

        def wrapper(*args, **kwargs):
            self.calls[name] = self.calls.get(name, 0) + 1
            return target(*args, **kwargs)

        return wrapper


def test_resolve_by_id_uses_direct_link(catalog_db):
    res = FormulaResolver(CatalogRepo(catalog_db)).resolve(product_id="A")
    assert res.resolved
    assert res.product.name == "Product A"
    assert res.formula.id == "FA"
    items = {fi.material.id: fi for fi in res.items}
    assert items["M"].qty_per_unit == 2.0
    assert items["M"].uom == "kg"
    assert items["P"].material.category == MaterialCategory.PACKAGING


def test_resolve_by_exact_name_is_case_insensitive(catalog_db):
    res = FormulaResolver(CatalogRepo(catalog_db)).resolve(product_name="  product a ")
    assert res.product.id == "A"


def test_resolve_by_substring_prefers_shortest_then_smallest_id(catalog_db):
    res = FormulaResolver(CatalogRepo(catalog_db)).resolve(product_name="Product")
    assert res.product.id == "A"


def test_unknown_id_falls_back_to_name(catalog_db):
    res = FormulaResolver(CatalogRepo(catalog_db)).resolve(product_id="nope", product_name="Product B")
    assert res.product.id == "B"


def test_formula_name_hint_picks_latest_version(catalog_db):
    res = FormulaResolver(CatalogRepo(catalog_db)).resolve(product_id="B")
    assert res.formula.id == "FB2"
    assert res.formula.version == 2
    client = [fi for fi in res.items if fi.material.id == "C"][0]
    assert client.material.is_client_material
    assert client.qty_per_unit == 0.5


def test_product_name_matches_formula_when_no_link(catalog_db):
    res = FormulaResolver(CatalogRepo(catalog_db)).resolve(product_id="H")
    assert res.formula.id == "FA"


@pytest.mark.parametrize(
    "kwargs,reason,has_product",
    [
        ({"product_name": "Nonexistent"}, "no_product", False),
        ({"product_name": ""}, "no_product", False),
        ({"product_id": "G"}, "no_formula", True),
        ({"product_id": "E"}, "empty_formula", True),
    ],
)
def test_unresolved_is_not_an_error(catalog_db, kwargs, reason, has_product):
    res = FormulaResolver(CatalogRepo(catalog_db)).resolve(**kwargs)
    assert not res.resolved
    assert res.reason == reason
    assert (res.product is not None) is has_product


def test_unknown_category_policy(catalog_db):
    default = FormulaResolver(CatalogRepo(catalog_db)).resolve(product_id="D")
    assert default.items[0].material.category == MaterialCategory.RAW

    resolver = FormulaResolver(CatalogRepo(catalog_db), unknown_category="unclassified")
    assert resolver.resolve(product_id="D").items[0].material.category == MaterialCategory.UNCLASSIFIED


def test_resolution_is_memoised(catalog_db):
    catalog = CountingCatalog(CatalogRepo(catalog_db))
    resolver = FormulaResolver(catalog)
    resolver.resolve(product_id="A")
    first = dict(catalog.calls)
    resolver.resolve(product_id="A")
    assert catalog.calls == first
    assert first["get_formula_items"] == 1


def test_category_override_leaves_given_resolver_untouched(catalog_db):
    resolver = FormulaResolver(CatalogRepo(catalog_db))
    assert resolver.resolve(product_id="D").items[0].material.category == MaterialCategory.RAW

    res = aggregate_requirements("PO-1", [{"product_id": "D", "quantity": 1}], resolver, unknown_category="unclassified")
    assert [r.material_id for r in res.unclassified] == ["X"]

    assert resolver.unknown_category == "raw"
    assert resolver.resolve(product_id="D").items[0].material.category == MaterialCategory.RAW
    res = aggregate_requirements("PO-1", [{"product_id": "D", "quantity": 1}], resolver)
    assert res.unclassified == []


def test_catalog_unavailable_raises(tmp_path):
    resolver = FormulaResolver(CatalogRepo(str(tmp_path / "missing.sqlite")))
    with pytest.raises(CatalogError) as exc:
        resolver.resolve(product_id="A")
    assert exc.value.operation == "get_product"
    assert exc.value.code == "CATALOG_UNAVAILABLE"
