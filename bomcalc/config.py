# bomcalc/config.py
"""
Configurações globais e valores padrão do cálculo de materiais.
"""

import os
from dataclasses import dataclass, field
from typing import Tuple


# Caminho padrão do banco de dados SQLite (stand-in local do data store)
DB_PATH = os.environ.get("BOMCALC_DB", os.path.join(os.getcwd(), "bomcalc.db"))


@dataclass
class DefaultConfig:
    """Valores padrão para parâmetros do sistema."""
    # 'raw' reclassifica categorias desconhecidas como matéria-prima;
    # 'unclassified' as separa num terceiro bucket.
    unknown_category_policy: str = "raw"
    bundle_packaging_types: Tuple[str, ...] = field(default_factory=lambda: ("kit", "bundle"))


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()
