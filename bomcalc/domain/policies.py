"""
Políticas de classificação do resultado de alocação.

Este módulo contém funções que encapsulam as regras de negócio de
status (geral e por linha), de roteamento de faltas para as filas de
remediação e de bloqueio de kits/bundles. São funções puras: dependem
apenas dos argumentos e são usadas pela camada de aplicação ao montar o
resumo de alocação.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from bomcalc.domain.models import (
    AllocationStatus,
    AllocationSummary,
    RemediationQueue,
    ShortfallLine,
)


def derive_status(total_allocated: float, total_shortfall: float) -> AllocationStatus:
    """Deriva o status geral a partir dos totais.

    Regras:
        - ``total_shortfall == 0`` → ``allocated``
        - ``total_allocated == 0`` e ``total_shortfall > 0`` → ``backordered``
        - caso contrário → ``partial``

    Args:
        total_allocated: Soma das quantidades alocadas.
        total_shortfall: Soma das faltas.

    Returns:
        O ``AllocationStatus`` correspondente.
    """
    if total_shortfall <= 0:
        return AllocationStatus.ALLOCATED
    if total_allocated <= 0:
        return AllocationStatus.BACKORDERED
    return AllocationStatus.PARTIAL


def line_status(required: float, allocated: float, shortfall: float) -> str:
    """Status de exibição de uma linha isolada.

    Regras:
        - falta e nada alocado → ``'backordered'``
        - falta com alguma alocação → ``'partial'``
        - requerido > 0 e alocado >= requerido → ``'allocated'``
        - caso contrário → ``'pending'``
    """
    if shortfall > 0 and allocated == 0:
        return "backordered"
    if shortfall > 0:
        return "partial"
    if required > 0 and allocated >= required:
        return "allocated"
    return "pending"


def remediation_queue(line: ShortfallLine) -> RemediationQueue:
    """Material do cliente vai para solicitação ao cliente; o resto, requisição de compra."""
    if line.is_client_material:
        return RemediationQueue.CLIENT_REQUEST
    return RemediationQueue.PURCHASE_REQUISITION


def remediation_queues(lines: Iterable[ShortfallLine]) -> Dict[RemediationQueue, List[ShortfallLine]]:
    """Particiona as linhas com falta nas duas filas (cada linha em exatamente uma)."""
    out: Dict[RemediationQueue, List[ShortfallLine]] = {q: [] for q in RemediationQueue}
    for ln in lines:
        if ln.shortfall_qty > 0:
            out[remediation_queue(ln)].append(ln)
    return out


def is_fully_backordered(summary: AllocationSummary) -> bool:
    """Todas as linhas sem alocação e com falta (aviso de produto sem estoque)."""
    if not summary.lines:
        return False
    return all(ln.allocated_qty == 0 and ln.shortfall_qty > 0 for ln in summary.lines)


def requires_full_materials(packaging_type, summary: AllocationSummary, bundle_types=("kit", "bundle")) -> bool:
    """Kits/bundles só podem ir para produção com todos os componentes disponíveis.

    Retorna ``True`` quando a produção deve ser BLOQUEADA: o tipo de
    embalagem está em ``bundle_types`` e o resumo não está totalmente
    alocado.
    """
    kind = str(packaging_type or "").strip().lower()
    if kind not in {str(b).lower() for b in bundle_types}:
        return False
    return summary.status != AllocationStatus.ALLOCATED or summary.total_shortfall > 0
