"""
Modelos (dataclasses) do domínio.

Observação importante:
- Os repositórios devolvem dicionários; a camada de casos de uso converte
  para as dataclasses abaixo ao cruzar a fronteira (ver adapters.parsers).
- As enumerações são fechadas: strings externas passam SEMPRE por uma
  função de normalização com ramo padrão explícito.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MaterialCategory(str, Enum):
    RAW = "raw"
    PACKAGING = "packaging"
    UNCLASSIFIED = "unclassified"


class AllocationStatus(str, Enum):
    ALLOCATED = "allocated"
    PARTIAL = "partial"
    BACKORDERED = "backordered"


class Suggestion(str, Enum):
    PRODUCTION = "production"
    PURCHASE = "purchase"


class RemediationAction(str, Enum):
    PRODUCTION = "production"
    PURCHASE = "purchase"
    SKIP = "skip"


class RemediationQueue(str, Enum):
    CLIENT_REQUEST = "client_request"
    PURCHASE_REQUISITION = "purchase_requisition"


class LineState(str, Enum):
    UNRESOLVED = "unresolved"
    ACTION_CHOSEN = "action_chosen"
    CONFIRMED = "confirmed"


class SessionState(str, Enum):
    OPEN = "open"
    SUBMITTED = "submitted"
    DEFERRED = "deferred"


# -------------------------
# Catálogo
# -------------------------

@dataclass
class Material:
    """Matéria-prima ou componente de embalagem."""
    id: str
    name: str
    category: MaterialCategory = MaterialCategory.RAW
    is_client_material: bool = False


@dataclass
class Formula:
    """Fórmula (BOM) versionada; a maior versão vence na busca por nome."""
    id: str
    name: str
    version: int = 0


@dataclass
class FormulaItem:
    formula_id: str
    material: Material
    qty_per_unit: float = 0.0
    uom: str = ""


@dataclass
class Product:
    """Produto acabado; ``formula_id`` é o vínculo direto (opcional)."""
    id: str
    name: str
    formula_id: Optional[str] = None
    formula_name: Optional[str] = None   # dica desnormalizada do nome da fórmula
    packaging_type: Optional[str] = None  # 'kit' | 'bundle' | livre


@dataclass
class OrderLine:
    id: str
    product_name: str = ""
    quantity: float = 0.0
    product_id: Optional[str] = None


# -------------------------
# Derivados (não persistidos pelo motor)
# -------------------------

@dataclass
class MaterialRequirement:
    material_id: str
    material_name: str
    category: MaterialCategory
    uom: str = ""
    is_client_material: bool = False
    required_qty: float = 0.0


@dataclass
class ExplodedItem:
    material_id: str
    material_name: str
    category: MaterialCategory
    qty_per_unit: float
    uom: str
    required_qty: float


@dataclass
class LineExplosion:
    """Trilha de auditoria de uma linha do pedido."""
    line_id: str
    product_name: str
    quantity: float
    product_id: Optional[str] = None
    formula_id: Optional[str] = None
    formula_name: Optional[str] = None
    formula_version: Optional[int] = None
    items: List[ExplodedItem] = field(default_factory=list)


@dataclass
class MissingFormula:
    line_id: str
    product_name: str
    quantity: float
    reason: str   # 'no_product' | 'no_formula' | 'empty_formula'


@dataclass
class RequirementsResult:
    order_id: str
    raw: List[MaterialRequirement] = field(default_factory=list)
    packaging: List[MaterialRequirement] = field(default_factory=list)
    unclassified: List[MaterialRequirement] = field(default_factory=list)
    breakdown: List[LineExplosion] = field(default_factory=list)
    missing_formulas: List[MissingFormula] = field(default_factory=list)

    def all_requirements(self) -> List[MaterialRequirement]:
        return [*self.raw, *self.packaging, *self.unclassified]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ShortfallLine:
    subject: str
    required_qty: float = 0.0
    allocated_qty: float = 0.0
    shortfall_qty: float = 0.0
    is_client_material: bool = False
    suggestion: Optional[Suggestion] = None
    material_id: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    line_id: Optional[str] = None

    @property
    def key(self) -> str:
        """Identidade estável da linha dentro de um resumo."""
        return self.material_id or self.line_id or self.product_id or self.subject


@dataclass
class AllocationSummary:
    order_id: str
    status: AllocationStatus
    total_required: float = 0.0
    total_allocated: float = 0.0
    total_shortfall: float = 0.0
    lines: List[ShortfallLine] = field(default_factory=list)
    upstream_status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
