# bomcalc/usecases/shortfall_session.py
"""
UC: sessão de remediação de faltas.

Cada linha com falta recebe uma ação (produção, compra ou ignorar). A
sessão termina por uma de duas saídas:

- ``confirm()``: exige ação em todas as linhas; dispara o gatilho de OP
  uma vez se alguma linha escolheu produção e o de requisição de compra
  uma vez se alguma escolheu compra.
- ``defer()``: grava um alerta por linha para revisão posterior.

Estados:
    linha:  unresolved -> action_chosen -> confirmed
    sessão: open -> submitted | deferred

A sessão é um objeto de escritor único; a confirmação é protegida por
lock e uma confirmação reentrante é rejeitada.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from bomcalc.adapters.parsers import parse_action
from bomcalc.domain.errors import (
    IncompleteSessionError,
    RemediationError,
    SessionStateError,
)
from bomcalc.domain.models import (
    AllocationSummary,
    LineState,
    RemediationAction,
    SessionState,
    ShortfallLine,
)
from bomcalc.infra.logger import log_remediation, log_system_event, log_transaction


@dataclass
class SessionLine:
    line: ShortfallLine
    key: str
    action: Optional[RemediationAction] = None
    state: LineState = LineState.UNRESOLVED


def _unique_key(base: str, used: Set[str]) -> str:
    """Chave da linha na sessão; repetições recebem sufixo ``#n``."""
    key, n = base, 1
    while key in used:
        n += 1
        key = f"{base}#{n}"
    used.add(key)
    return key


# gatilho -> ação que o exige
_TRIGGERS = (
    (RemediationAction.PRODUCTION, "generate_production_for_shortages"),
    (RemediationAction.PURCHASE, "generate_requisitions_for_shortages"),
)


class RemediationSession:
    """Sessão interativa de resolução das faltas de um pedido.

    Args:
        order_id: Pedido/lote.
        summary_or_lines: ``AllocationSummary`` ou linhas; apenas linhas com
            falta > 0 entram na sessão.
        gateway: objeto com ``generate_production_for_shortages(order_id)`` e
            ``generate_requisitions_for_shortages(order_id)``.
        alerts: objeto com ``insert_many(rows)`` (saída "lembrar depois").
    """

    def __init__(
        self,
        order_id: str,
        summary_or_lines: Union[AllocationSummary, Iterable[ShortfallLine]],
        gateway,
        alerts,
    ):
        self.order_id = str(order_id)
        self.gateway = gateway
        self.alerts = alerts
        self.state = SessionState.OPEN
        self.outcome: Optional[Dict[str, Any]] = None
        self._succeeded: set = set()
        self._lock = threading.Lock()

        src = summary_or_lines.lines if isinstance(summary_or_lines, AllocationSummary) else summary_or_lines
        self.lines: List[SessionLine] = []
        used: Set[str] = set()
        for ln in src:
            if ln.shortfall_qty <= 0:
                continue
            preset = parse_action(ln.suggestion.value if ln.suggestion else None)
            self.lines.append(SessionLine(
                line=ln,
                key=_unique_key(ln.key, used),
                action=preset,
                state=LineState.ACTION_CHOSEN if preset else LineState.UNRESOLVED,
            ))
        log_remediation("session_open", self.order_id, lines=len(self.lines))

    # -------------------------
    # Consultas
    # -------------------------
    def get(self, key: str) -> SessionLine:
        for sl in self.lines:
            if sl.key == key:
                return sl
        raise KeyError(key)

    def pending(self) -> List[str]:
        return [sl.key for sl in self.lines if sl.action is None]

    def _require_open(self, op: str) -> None:
        if self.state != SessionState.OPEN:
            raise SessionStateError(f"Cannot {op}: session is {self.state.value}")

    # -------------------------
    # Transições
    # -------------------------
    def choose(self, key: str, action: Union[RemediationAction, str]) -> SessionLine:
        """Escolhe (ou troca) a ação de uma linha."""
        self._require_open("choose")
        parsed = action if isinstance(action, RemediationAction) else parse_action(action)
        if parsed is None:
            raise ValueError(f"Unknown remediation action: {action!r}")
        sl = self.get(key)
        sl.action = parsed
        sl.state = LineState.ACTION_CHOSEN
        log_remediation("action_chosen", self.order_id, line=key, choice=parsed.value)
        return sl

    def confirm(self) -> Dict[str, Any]:
        """Dispara os gatilhos necessários e encerra a sessão.

        Returns:
            Dict ``{"production": ..., "purchase": ...}`` com
            ``'ok'``, ``'failed'`` ou ``'not_required'`` por gatilho.

        Raises:
            IncompleteSessionError: alguma linha sem ação.
            SessionStateError: sessão adiada ou confirmação em andamento.
            RemediationError: algum gatilho falhou (sessão continua aberta).
        """
        if self.state == SessionState.SUBMITTED:
            return self.outcome
        if not self._lock.acquire(blocking=False):
            raise SessionStateError("Confirmation already in progress")
        try:
            self._require_open("confirm")
            pending = self.pending()
            if pending:
                raise IncompleteSessionError(pending)

            chosen = {sl.action for sl in self.lines}
            outcome: Dict[str, Any] = {}
            errors: Dict[str, str] = {}
            cause: Optional[Exception] = None
            for action, method in _TRIGGERS:
                if action not in chosen:
                    outcome[action.value] = "not_required"
                    continue
                if action in self._succeeded:
                    outcome[action.value] = "ok"
                    continue
                try:
                    getattr(self.gateway, method)(self.order_id)
                except Exception as e:
                    outcome[action.value] = "failed"
                    errors[action.value] = str(e)
                    cause = cause or e
                    log_remediation("trigger_failed", self.order_id, level="error", trigger=method, error=str(e))
                    continue
                self._succeeded.add(action)
                outcome[action.value] = "ok"
                log_remediation("trigger_ok", self.order_id, trigger=method)

            if errors:
                outcome["errors"] = errors
                log_transaction("remediation_confirm", {"order_id": self.order_id}, error=str(errors))
                log_system_event("remediation_confirm_error", {"order_id": self.order_id, "errors": errors}, level="error")
                raise RemediationError(self.order_id, outcome) from cause

            for sl in self.lines:
                sl.state = LineState.CONFIRMED
            self.state = SessionState.SUBMITTED
            self.outcome = outcome
            log_transaction("remediation_confirm", {"order_id": self.order_id}, result=outcome)
            return outcome
        finally:
            self._lock.release()

    def defer(self) -> int:
        """Adia a decisão: um alerta por linha com falta."""
        self._require_open("defer")
        rows = [
            {
                "order_id": self.order_id,
                "subject": sl.line.subject,
                "material_id": sl.line.material_id,
                "product_id": sl.line.product_id,
                "shortfall": sl.line.shortfall_qty,
                "suggestion": sl.line.suggestion.value if sl.line.suggestion else None,
            }
            for sl in self.lines
        ]
        written = self.alerts.insert_many(rows) if rows else 0
        self.state = SessionState.DEFERRED
        log_remediation("deferred", self.order_id, alerts=len(rows))
        log_transaction("remediation_defer", {"order_id": self.order_id}, result=len(rows))
        return written
