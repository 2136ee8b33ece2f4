# bomcalc/usecases/allocation_summary.py
"""
UC: resumo de alocação e classificação das faltas.

Duas origens para o mesmo ``AllocationSummary``:

(a) ``summarize_requirements``: requisitos agregados + snapshot de
    disponibilidade. Material do cliente consome o saldo do cliente; os
    demais, o saldo interno. ``alocado = min(requerido, disponível)``.

(b) ``normalize_allocation_response``: resposta já "moldada" de um
    procedimento remoto de alocação. O formato varia; as estratégias
    abaixo são tentadas em ordem e a primeira lista não vazia vence:
      1. campo ``lines``
      2. campo ``lines_materials``
      3. varredura de todos os campos-lista por registros com cara de
         material (``material_name``/``material``/``name``) ou de produto
         (``product``)

Em ambos os casos os totais são recalculados a partir das linhas e o
status é derivado dos totais; o status do upstream é guardado apenas
como ``upstream_status`` (dica não vinculante).
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from bomcalc.config import DB_PATH, DEFAULTS
from bomcalc.adapters.parsers import (
    has_value,
    normalize_str,
    parse_status,
    parse_suggestion,
    to_bool,
    to_qty,
)
from bomcalc.domain.errors import BomCalcError, RemoteProcedureError
from bomcalc.domain.explosion import allocate
from bomcalc.domain.models import (
    AllocationSummary,
    MaterialRequirement,
    RemediationQueue,
    RequirementsResult,
    ShortfallLine,
)
from bomcalc.domain import policies
from bomcalc.infra.repositories import AvailabilityRepo, CatalogRepo, OrderRepo, ParamsRepo
from bomcalc.infra.logger import log_allocation, log_system_event, log_transaction
from bomcalc.usecases.materials_calculator import aggregate_requirements
from bomcalc.usecases.resolve_formula import FormulaResolver


_REQUIRED_KEYS = ("required_qty", "required", "required_total", "needed")
_ALLOCATED_KEYS = ("allocated_qty", "allocated")
_SHORTFALL_KEYS = ("shortfall_qty", "shortfall")
_CLIENT_KEYS = ("is_client_material", "is_client")
_MATERIAL_NAME_KEYS = ("material_name", "material", "name")
_PRODUCT_NAME_KEYS = ("product", "product_name")


def _first(rec: Mapping[str, Any], keys: Sequence[str]) -> Tuple[Optional[str], Any]:
    """Primeiro campo preenchido entre ``keys`` -> (chave, valor)."""
    for k in keys:
        if has_value(rec.get(k)):
            return k, rec.get(k)
    return None, None


def _build_summary(order_id: str, lines: List[ShortfallLine], upstream_status: Optional[str] = None) -> AllocationSummary:
    total_required = sum(ln.required_qty for ln in lines)
    total_allocated = sum(ln.allocated_qty for ln in lines)
    total_shortfall = sum(ln.shortfall_qty for ln in lines)
    status = policies.derive_status(total_allocated, total_shortfall)

    if upstream_status is not None and parse_status(upstream_status) != status:
        log_allocation("status_mismatch", order_id, level="warning",
                       upstream=upstream_status, derived=status.value)

    return AllocationSummary(
        order_id=str(order_id),
        status=status,
        total_required=total_required,
        total_allocated=total_allocated,
        total_shortfall=total_shortfall,
        lines=lines,
        upstream_status=upstream_status,
    )


# -------------------------
# (a) requisitos + disponibilidade
# -------------------------

def summarize_requirements(
    order_id: str,
    requirements: Union[RequirementsResult, Iterable[MaterialRequirement]],
    availability: Mapping[str, Mapping[str, Any]],
) -> AllocationSummary:
    """Aloca a disponibilidade contra cada requisito agregado.

    Args:
        order_id: Pedido/lote.
        requirements: ``RequirementsResult`` ou lista de ``MaterialRequirement``.
        availability: material_id -> ``{client_qty, internal_qty}``; material
            ausente do snapshot tem disponibilidade zero.

    Returns:
        ``AllocationSummary`` com uma linha por material, na ordem dos buckets.
    """
    if isinstance(requirements, RequirementsResult):
        reqs = requirements.all_requirements()
    else:
        reqs = list(requirements)

    lines: List[ShortfallLine] = []
    for req in reqs:
        stock = availability.get(req.material_id) or {}
        key = "client_qty" if req.is_client_material else "internal_qty"
        allocated, shortfall = allocate(to_qty(req.required_qty), to_qty(stock.get(key)))
        lines.append(ShortfallLine(
            subject=req.material_name,
            required_qty=to_qty(req.required_qty),
            allocated_qty=allocated,
            shortfall_qty=shortfall,
            is_client_material=req.is_client_material,
            material_id=req.material_id,
        ))

    summary = _build_summary(order_id, lines)
    log_allocation("summarized", order_id, status=summary.status.value,
                   required=summary.total_required, allocated=summary.total_allocated,
                   shortfall=summary.total_shortfall)
    return summary


# -------------------------
# (b) resposta do procedimento remoto
# -------------------------

def _is_material_like(rec: Any) -> bool:
    if not isinstance(rec, Mapping):
        return False
    return any(has_value(rec.get(k)) for k in (*_MATERIAL_NAME_KEYS, "product"))


def _from_lines(raw: Mapping[str, Any]) -> List[Any]:
    src = raw.get("lines")
    return list(src) if isinstance(src, list) else []


def _from_lines_materials(raw: Mapping[str, Any]) -> List[Any]:
    src = raw.get("lines_materials")
    return list(src) if isinstance(src, list) else []


def _from_array_scan(raw: Mapping[str, Any]) -> List[Any]:
    out: List[Any] = []
    for value in raw.values():
        if isinstance(value, list):
            out.extend(r for r in value if _is_material_like(r))
    return out


NORMALIZATION_STRATEGIES: List[Tuple[str, Callable[[Mapping[str, Any]], List[Any]]]] = [
    ("lines", _from_lines),
    ("lines_materials", _from_lines_materials),
    ("array_scan", _from_array_scan),
]


def _normalize_line(order_id: str, rec: Mapping[str, Any]) -> ShortfallLine:
    """Normaliza um registro (material ou produto) numa ``ShortfallLine``.

    Regras:
        - requerido ausente e falta informada → requerido = alocado + falta
        - alocado ausente e falta informada → alocado = requerido − falta (mínimo 0)
        - alocado é limitado ao requerido
        - falta = requerido − alocado; falta informada divergente só gera aviso
    """
    req_key, req_val = _first(rec, _REQUIRED_KEYS)
    alloc_key, alloc_val = _first(rec, _ALLOCATED_KEYS)
    short_key, short_val = _first(rec, _SHORTFALL_KEYS)

    allocated = to_qty(alloc_val)
    if req_key is None and short_key is not None:
        required = allocated + to_qty(short_val)
    else:
        required = to_qty(req_val)
        if alloc_key is None and short_key is not None:
            allocated = max(0.0, required - to_qty(short_val))
    allocated = min(allocated, required)
    shortfall = required - allocated

    material_name = normalize_str(_first(rec, _MATERIAL_NAME_KEYS)[1])
    product_name = normalize_str(_first(rec, _PRODUCT_NAME_KEYS)[1])
    material_id = normalize_str(rec.get("material_id"))
    if material_id is None and material_name is not None:
        material_id = normalize_str(rec.get("id"))

    client_key, client_val = _first(rec, _CLIENT_KEYS)
    is_client = to_bool(client_val) if client_key else "client_inventory" in rec

    line = ShortfallLine(
        subject=material_name or product_name or material_id or "-",
        required_qty=required,
        allocated_qty=allocated,
        shortfall_qty=shortfall,
        is_client_material=is_client,
        suggestion=parse_suggestion(rec.get("suggestion")),
        material_id=material_id,
        product_id=normalize_str(rec.get("product_id")),
        product_name=product_name,
        line_id=normalize_str(rec.get("po_line_id") or rec.get("line_id")),
    )

    if short_key is not None and abs(to_qty(short_val) - shortfall) > 1e-9:
        log_allocation("shortfall_mismatch", order_id, level="warning",
                       subject=line.subject, upstream=short_val, recomputed=shortfall)
    return line


def normalize_allocation_response(raw: Any, order_id: str) -> AllocationSummary:
    """Converte a resposta heterogênea do procedimento de alocação num resumo canônico."""
    if not isinstance(raw, Mapping):
        raw = {}

    strategy, records = "none", []
    for name, fn in NORMALIZATION_STRATEGIES:
        found = fn(raw)
        if found:
            strategy, records = name, found
            break

    oid = str(normalize_str(raw.get("order_id")) or normalize_str(raw.get("po_id")) or order_id)
    lines = [_normalize_line(oid, r) for r in records if isinstance(r, Mapping)]
    summary = _build_summary(oid, lines, upstream_status=normalize_str(raw.get("status")))
    log_allocation("normalized", oid, strategy=strategy, lines=len(lines),
                   status=summary.status.value, shortfall=summary.total_shortfall)
    return summary


# -------------------------
# Classificação
# -------------------------

def remediation_queues(
    summary_or_lines: Union[AllocationSummary, Iterable[ShortfallLine]],
) -> Dict[RemediationQueue, List[ShortfallLine]]:
    """Filas de remediação (cliente x compra) das linhas com falta."""
    if isinstance(summary_or_lines, AllocationSummary):
        return policies.remediation_queues(summary_or_lines.lines)
    return policies.remediation_queues(summary_or_lines)


def run_remote_allocation(order_id: str, procedure: Callable[[str], Any]) -> AllocationSummary:
    """Chama o procedimento remoto de alocação e normaliza a resposta.

    Falhas de transporte viram ``RemoteProcedureError`` (mensagem original
    preservada, causa encadeada).
    """
    name = getattr(procedure, "__name__", "allocation")
    log_system_event("remote_allocation_start", {"order_id": order_id, "procedure": name})
    try:
        try:
            raw = procedure(order_id)
        except BomCalcError:
            raise
        except Exception as e:
            raise RemoteProcedureError(name, str(e)) from e

        summary = normalize_allocation_response(raw, order_id)
        log_transaction("remote_allocation", {"order_id": order_id, "procedure": name},
                        result=summary.status.value)
        return summary
    except Exception as e:
        error_msg = str(e)
        log_transaction("remote_allocation", {"order_id": order_id, "procedure": name}, error=error_msg)
        log_system_event("remote_allocation_error", {"order_id": order_id, "error": error_msg}, level="error")
        raise


def _bundle_types(params: ParamsRepo) -> Tuple[str, ...]:
    raw = params.get("bundle_packaging_types")
    if not raw:
        return tuple(DEFAULTS.bundle_packaging_types)
    return tuple(s.strip().lower() for s in raw.split(",") if s.strip())


def run_allocation(order_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Fluxo completo sobre o banco local: requisitos → snapshot → resumo → filas.

    Retorna dict com ``requirements``, ``summary``, ``queues``, ``blocked``
    (produtos kit/bundle que não podem ir para produção) e
    ``fully_backordered``.
    """
    log_system_event("allocation_start", {"order_id": order_id})
    try:
        catalog = CatalogRepo(db_path)
        lines = OrderRepo(db_path).get_lines(order_id)
        params = ParamsRepo(db_path)
        policy = params.get("unknown_category_policy", DEFAULTS.unknown_category_policy)

        requirements = aggregate_requirements(order_id, lines, FormulaResolver(catalog, unknown_category=policy))
        summary = summarize_requirements(order_id, requirements, AvailabilityRepo(db_path).snapshot())
        queues = remediation_queues(summary)

        bundle_types = _bundle_types(params)
        blocked: List[str] = []
        seen = set()
        for exp in requirements.breakdown:
            if not exp.product_id or exp.product_id in seen:
                continue
            seen.add(exp.product_id)
            product = catalog.get_product(exp.product_id) or {}
            if policies.requires_full_materials(product.get("packaging_type"), summary, bundle_types):
                blocked.append(exp.product_name)
                log_allocation("bundle_blocked", order_id, level="warning",
                               product=exp.product_name, packaging_type=product.get("packaging_type"))

        result = {
            "order_id": str(order_id),
            "requirements": requirements,
            "summary": summary,
            "queues": queues,
            "blocked": blocked,
            "fully_backordered": policies.is_fully_backordered(summary),
        }
        log_transaction("allocation", {"order_id": order_id},
                        result={"status": summary.status.value, "blocked": blocked})
        log_system_event("allocation_success", {"order_id": order_id, "status": summary.status.value})
        return result
    except Exception as e:
        error_msg = str(e)
        log_transaction("allocation", {"order_id": order_id}, error=error_msg)
        log_system_event("allocation_error", {"order_id": order_id, "error": error_msg}, level="error")
        raise
