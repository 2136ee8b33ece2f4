"""
Utilidades de parsing na fronteira do modelo de dados.

Tudo que vem de fora (catálogo, planilhas, resposta do procedimento de
alocação) passa por aqui antes de chegar ao motor. A política é de
preenchimento defensivo: valores ausentes ou inválidos viram zero/None em
vez de exceção, e strings categóricas são mapeadas para enumerações
fechadas com um ramo padrão explícito.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

from bomcalc.domain.models import (
    AllocationStatus,
    MaterialCategory,
    RemediationAction,
    Suggestion,
)

_NUM_RE = re.compile(r"^[-+]?\d+(?:[.,]\d+)?$")
_TRUE = {"1", "true", "t", "sim", "s", "y", "yes"}
_FALSE = {"0", "false", "f", "nao", "não", "n", "no", ""}


def to_qty(val: Any) -> float:
    """Converte uma quantidade para float não-negativo (parse-or-zero).

    Exemplos:
        10        → 10.0
        "2,5"     → 2.5
        " 3.0 "   → 3.0
        None      → 0.0
        "abc"     → 0.0
        -4        → 0.0
        float nan → 0.0

    Args:
        val: Valor bruto (número, string ou None).

    Returns:
        A quantidade como float finito e ``>= 0``; qualquer valor que não
        possa ser interpretado vira ``0.0``.
    """
    if val is None or isinstance(val, bool):
        return 0.0
    if isinstance(val, (int, float)):
        num = float(val)
    else:
        s = str(val).strip()
        if not _NUM_RE.match(s):
            return 0.0
        num = float(s.replace(",", "."))
    if math.isnan(num) or math.isinf(num) or num < 0:
        return 0.0
    return num


def has_value(val: Any) -> bool:
    """Indica se um campo numérico veio preenchido (mesmo que inválido)."""
    if val is None:
        return False
    if isinstance(val, float) and math.isnan(val):
        return False
    if isinstance(val, str) and not val.strip():
        return False
    return True


def normalize_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def name_key(x: Any) -> str:
    """Chave de comparação de nomes: sem espaços extras, minúsculas."""
    return " ".join(str(x or "").split()).lower()


def to_bool(val: Any) -> bool:
    """Converte valores variados em bool (desconhecido → False)."""
    if isinstance(val, bool):
        return val
    if val is None:
        return False
    if isinstance(val, (int, float)):
        return val == 1
    s = str(val).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    return False


def parse_category(raw: Any, unknown_policy: str = "raw") -> MaterialCategory:
    """Mapeia a categoria textual do material para ``MaterialCategory``.

    A comparação é case-insensitive. Qualquer valor fora de
    ``raw``/``packaging`` cai no ramo padrão definido por ``unknown_policy``:
    ``'raw'`` (padrão) ou ``'unclassified'``.
    """
    s = name_key(raw)
    if s == MaterialCategory.PACKAGING.value:
        return MaterialCategory.PACKAGING
    if s == MaterialCategory.RAW.value:
        return MaterialCategory.RAW
    if name_key(unknown_policy) == MaterialCategory.UNCLASSIFIED.value:
        return MaterialCategory.UNCLASSIFIED
    return MaterialCategory.RAW


def parse_status(raw: Any) -> Optional[AllocationStatus]:
    """Status externo → ``AllocationStatus`` (ou None se não reconhecido)."""
    s = name_key(raw)
    for status in AllocationStatus:
        if s == status.value:
            return status
    if s in {"partially allocated", "partially_allocated"}:
        return AllocationStatus.PARTIAL
    return None


def parse_suggestion(raw: Any) -> Optional[Suggestion]:
    s = name_key(raw)
    for sug in Suggestion:
        if s == sug.value:
            return sug
    return None


def parse_action(raw: Any) -> Optional[RemediationAction]:
    """Ação de remediação escolhida pelo usuário; vazio/desconhecido → None."""
    s = name_key(raw)
    for action in RemediationAction:
        if s == action.value:
            return action
    return None
