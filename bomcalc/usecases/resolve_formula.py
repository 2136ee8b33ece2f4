# bomcalc/usecases/resolve_formula.py
"""
UC: resolver a fórmula (BOM) ativa de um produto do pedido.

Ordem de resolução:
1) Produto: por id (se informado e existente); senão por nome, primeiro
   igualdade (case-insensitive, sem espaços nas pontas), depois substring.
   Entre candidatos por substring vence o nome mais curto, depois o menor id.
2) Fórmula: vínculo direto ``product.formula_id``.
3) Fallback por nome: dica ``formula_name`` do produto ou, na falta dela,
   o próprio nome do produto; igualdade antes de substring, maior versão
   vence, empate pelo menor id.

"Não encontrado" nunca é erro: devolve ``Resolution`` com ``reason``.
Falha de leitura do catálogo (``CatalogError``) é propagada.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from bomcalc.adapters.parsers import name_key, normalize_str, to_bool, to_qty, parse_category
from bomcalc.domain.models import Formula, FormulaItem, Material, Product


REASON_NO_PRODUCT = "no_product"
REASON_NO_FORMULA = "no_formula"
REASON_EMPTY_FORMULA = "empty_formula"


@dataclass
class Resolution:
    product: Optional[Product] = None
    formula: Optional[Formula] = None
    items: List[FormulaItem] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.formula is not None and bool(self.items)


def _product_from_row(row: Dict[str, Any]) -> Product:
    return Product(
        id=str(row["id"]),
        name=normalize_str(row.get("name")) or str(row["id"]),
        formula_id=normalize_str(row.get("formula_id")),
        formula_name=normalize_str(row.get("formula_name")),
        packaging_type=normalize_str(row.get("packaging_type")),
    )


def _formula_from_row(row: Dict[str, Any]) -> Formula:
    return Formula(
        id=str(row["id"]),
        name=normalize_str(row.get("name")) or str(row["id"]),
        version=int(to_qty(row.get("version"))),
    )


def _item_from_row(row: Dict[str, Any], unknown_category: str) -> FormulaItem:
    material_id = str(row["material_id"])
    material = Material(
        id=material_id,
        name=normalize_str(row.get("material_name")) or material_id,
        category=parse_category(row.get("category"), unknown_category),
        is_client_material=to_bool(row.get("is_client_supplied")),
    )
    return FormulaItem(
        formula_id=str(row.get("formula_id") or ""),
        material=material,
        qty_per_unit=to_qty(row.get("qty_per_unit")),
        uom=normalize_str(row.get("uom")) or "",
    )


class FormulaResolver:
    """Resolve produto -> fórmula -> itens contra uma interface de catálogo.

    ``catalog`` é qualquer objeto com ``get_product``, ``find_products_by_name``,
    ``get_formula``, ``find_formulas_by_name`` e ``get_formula_items``
    (ver ``bomcalc.infra.repositories.CatalogRepo``).
    """

    def __init__(self, catalog, unknown_category: str = "raw"):
        self.catalog = catalog
        self.unknown_category = unknown_category
        self._memo: Dict[Tuple[Optional[str], str], Resolution] = {}

    # -------------------------
    # Produto
    # -------------------------
    def _find_product(self, product_id: Optional[str], product_name: Optional[str]) -> Optional[Product]:
        if product_id:
            row = self.catalog.get_product(product_id)
            if row:
                return _product_from_row(row)
        name = normalize_str(product_name)
        if not name:
            return None
        rows = self.catalog.find_products_by_name(name, exact=True)
        if not rows:
            rows = self.catalog.find_products_by_name(name, exact=False)
            rows = sorted(rows, key=lambda r: (len(str(r.get("name") or "")), str(r["id"])))
        else:
            rows = sorted(rows, key=lambda r: str(r["id"]))
        return _product_from_row(rows[0]) if rows else None

    # -------------------------
    # Fórmula
    # -------------------------
    def _find_formula(self, product: Product) -> Optional[Formula]:
        if product.formula_id:
            row = self.catalog.get_formula(product.formula_id)
            if row:
                return _formula_from_row(row)

        hint = product.formula_name or product.name
        for exact in (True, False):
            rows = self.catalog.find_formulas_by_name(hint, exact=exact)
            if rows:
                formulas = [_formula_from_row(r) for r in rows]
                formulas.sort(key=lambda f: (-f.version, f.id))
                return formulas[0]
        return None

    def resolve(self, product_id: Optional[str] = None, product_name: Optional[str] = None) -> Resolution:
        key = (normalize_str(product_id), name_key(product_name))
        if key in self._memo:
            return self._memo[key]

        product = self._find_product(key[0], product_name)
        if product is None:
            res = Resolution(reason=REASON_NO_PRODUCT)
        else:
            formula = self._find_formula(product)
            if formula is None:
                res = Resolution(product=product, reason=REASON_NO_FORMULA)
            else:
                items = [
                    _item_from_row({"formula_id": formula.id, **r}, self.unknown_category)
                    for r in self.catalog.get_formula_items(formula.id)
                ]
                res = Resolution(
                    product=product,
                    formula=formula,
                    items=items,
                    reason=None if items else REASON_EMPTY_FORMULA,
                )

        self._memo[key] = res
        return res
