# bomcalc/usecases/materials_calculator.py
"""
UC: calculadora de materiais (explosão de requisitos de um pedido/lote).

Fluxo:
1) Para cada linha do pedido, resolve a fórmula do produto (FormulaResolver).
2) Para cada item da fórmula: requerido = quantidade da linha × qtd por unidade.
3) Classifica pelo ``category`` do material (``packaging`` → embalagem; o
   resto → matéria-prima, ou bucket ``unclassified`` se assim configurado).
4) Acumula por material dentro de cada bucket (um registro por material).
5) Linhas sem fórmula vão para ``missing_formulas`` com a quantidade original
   e não contribuem para nenhum bucket.

Observações:
- Dados ruins nunca geram exceção (parse-or-zero na fronteira).
- ``CatalogError`` (catálogo indisponível) é propagado ao chamador.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Union

from bomcalc.config import DB_PATH, DEFAULTS
from bomcalc.adapters.parsers import normalize_str, to_qty
from bomcalc.domain.explosion import accumulate, explode, sort_by_material_name
from bomcalc.domain.models import (
    ExplodedItem,
    LineExplosion,
    MaterialCategory,
    MaterialRequirement,
    MissingFormula,
    OrderLine,
    RequirementsResult,
)
from bomcalc.infra.repositories import CatalogRepo, OrderRepo, ParamsRepo
from bomcalc.infra.logger import log_calculation, log_system_event, log_transaction
from bomcalc.usecases.resolve_formula import FormulaResolver


def _to_order_line(raw: Union[OrderLine, Dict[str, Any]], seq: int) -> OrderLine:
    """Normaliza uma linha de pedido (dict da fonte ou dataclass)."""
    if isinstance(raw, OrderLine):
        return OrderLine(
            id=raw.id,
            product_name=raw.product_name or "",
            quantity=to_qty(raw.quantity),
            product_id=normalize_str(raw.product_id),
        )
    return OrderLine(
        id=str(raw.get("id") or seq + 1),
        product_name=normalize_str(raw.get("product_name")) or "",
        quantity=to_qty(raw.get("quantity")),
        product_id=normalize_str(raw.get("product_id")),
    )


def aggregate_requirements(
    order_id: str,
    lines: Iterable[Union[OrderLine, Dict[str, Any]]],
    resolver: FormulaResolver,
    unknown_category: Optional[str] = None,
) -> RequirementsResult:
    """Explode as linhas do pedido e agrega os requisitos por material.

    Args:
        order_id: Identificador do pedido/lote.
        lines: Linhas do pedido (``OrderLine`` ou dicts com ``id``,
            ``product_id``, ``product_name`` e ``quantity``).
        resolver: ``FormulaResolver`` ligado ao catálogo.
        unknown_category: Política para categorias desconhecidas; se
            diferente da do resolver, a explosão usa um resolver novo com
            essa política (o resolver recebido não é alterado).

    Returns:
        ``RequirementsResult`` com os buckets ordenados por nome do material.
    """
    if unknown_category is not None and unknown_category != resolver.unknown_category:
        resolver = FormulaResolver(resolver.catalog, unknown_category=unknown_category)

    buckets: Dict[MaterialCategory, Dict[str, MaterialRequirement]] = {c: {} for c in MaterialCategory}
    breakdown: List[LineExplosion] = []
    missing: List[MissingFormula] = []

    for seq, raw in enumerate(lines):
        line = _to_order_line(raw, seq)
        res = resolver.resolve(product_id=line.product_id, product_name=line.product_name)
        product_name = res.product.name if res.product else line.product_name

        if not res.resolved:
            missing.append(MissingFormula(
                line_id=line.id,
                product_name=line.product_name or product_name,
                quantity=line.quantity,
                reason=res.reason or "no_formula",
            ))
            breakdown.append(LineExplosion(
                line_id=line.id,
                product_name=product_name,
                quantity=line.quantity,
                product_id=res.product.id if res.product else line.product_id,
            ))
            log_calculation("missing_formula", order_id, line_id=line.id,
                            product_name=product_name, quantity=line.quantity, reason=res.reason)
            continue

        explosion = LineExplosion(
            line_id=line.id,
            product_name=product_name,
            quantity=line.quantity,
            product_id=res.product.id,
            formula_id=res.formula.id,
            formula_name=res.formula.name,
            formula_version=res.formula.version,
        )
        for fi in res.items:
            item = ExplodedItem(
                material_id=fi.material.id,
                material_name=fi.material.name,
                category=fi.material.category,
                qty_per_unit=fi.qty_per_unit,
                uom=fi.uom,
                required_qty=explode(line.quantity, fi.qty_per_unit),
            )
            explosion.items.append(item)
            accumulate(buckets[item.category], item, fi.material.is_client_material)
        breakdown.append(explosion)
        log_calculation("line_exploded", order_id, line_id=line.id, product_name=product_name,
                        formula=res.formula.name, version=res.formula.version, items=len(res.items))

    result = RequirementsResult(
        order_id=str(order_id),
        raw=sort_by_material_name(buckets[MaterialCategory.RAW].values()),
        packaging=sort_by_material_name(buckets[MaterialCategory.PACKAGING].values()),
        unclassified=sort_by_material_name(buckets[MaterialCategory.UNCLASSIFIED].values()),
        breakdown=breakdown,
        missing_formulas=missing,
    )
    log_calculation("aggregated", order_id, raw=len(result.raw), packaging=len(result.packaging),
                    unclassified=len(result.unclassified), missing=len(missing))
    return result


def run_materials_calculator(order_id: str, db_path: str = DB_PATH) -> RequirementsResult:
    """Calcula os requisitos de materiais de um pedido gravado no banco."""
    log_system_event("materials_calculator_start", {"order_id": order_id})
    try:
        lines = OrderRepo(db_path).get_lines(order_id)
        policy = ParamsRepo(db_path).get("unknown_category_policy", DEFAULTS.unknown_category_policy)
        resolver = FormulaResolver(CatalogRepo(db_path), unknown_category=policy)
        result = aggregate_requirements(order_id, lines, resolver)

        summary = {
            "lines": len(lines),
            "raw": len(result.raw),
            "packaging": len(result.packaging),
            "missing": len(result.missing_formulas),
        }
        log_transaction("materials_calculator", {"order_id": order_id}, result=summary)
        log_system_event("materials_calculator_success", {"order_id": order_id, **summary})
        return result
    except Exception as e:
        error_msg = str(e)
        log_transaction("materials_calculator", {"order_id": order_id}, error=error_msg)
        log_system_event("materials_calculator_error", {"order_id": order_id, "error": error_msg}, level="error")
        raise
