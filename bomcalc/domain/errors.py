"""
Exceções do motor de cálculo de materiais.

Duas classes de problema:
- falhas "duras" (não foi possível LER os dados: catálogo ou procedimento
  remoto indisponível) -> exceções abaixo, propagadas ao chamador;
- lacunas "moles" (fórmula ausente, número inválido, categoria desconhecida)
  -> nunca geram exceção; são normalizadas para zero/omissão.

Cada classe carrega um atributo ``code`` legível por máquina.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BomCalcError(Exception):
    """Base de todas as exceções do pacote."""

    code: str = "BOMCALC_ERROR"


class CatalogError(BomCalcError):
    """Falha de transporte/armazenamento ao ler o catálogo."""

    code: str = "CATALOG_UNAVAILABLE"

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class RemoteProcedureError(BomCalcError):
    """Procedimento remoto (alocação, geração de OP/requisição) falhou."""

    code: str = "REMOTE_PROCEDURE_FAILED"

    def __init__(self, procedure: str, message: str):
        self.procedure = procedure
        super().__init__(f"{procedure}: {message}")


class RemediationError(BomCalcError):
    """Uma ou mais ações de remediação falharam ao confirmar a sessão."""

    code: str = "REMEDIATION_FAILED"

    def __init__(self, order_id: str, outcome: Dict[str, Any], message: Optional[str] = None):
        self.order_id = order_id
        self.outcome = outcome
        super().__init__(message or f"Remediation failed for order {order_id}: {outcome}")


class SessionStateError(BomCalcError):
    """Operação inválida para o estado atual da sessão de remediação."""

    code: str = "INVALID_SESSION_STATE"


class IncompleteSessionError(SessionStateError):
    """Confirmação com linhas ainda sem ação escolhida."""

    code: str = "SESSION_INCOMPLETE"

    def __init__(self, pending: list):
        self.pending = list(pending)
        super().__init__(f"Lines without an action: {', '.join(self.pending)}")
