# bomcalc/adapters/xlsx_loader.py
"""
Loaders para planilhas (XLSX) do catálogo e das linhas de pedido.

Essas funções:
- leem planilhas XLSX usando pandas;
- normalizam cabeçalhos (acentos, variações, sinônimos);
- retornam listas de dicionários com as chaves esperadas pela camada infra.

Observações:
- Quantidades NÃO são convertidas aqui; o parse-or-zero acontece no motor.
- A planilha de catálogo tem uma aba por entidade: ``materials``,
  ``formulas``, ``formula_items``, ``products`` e (opcional)
  ``availability``. Abas ausentes resultam em listas vazias.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import pandas as pd


# ---------------------------
# utilitários de normalização
# ---------------------------

def _slug(s: str) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, sem não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def _safe_get(row, key) -> Optional[str]:
    """Valor da célula como string aparada (NA/vazio -> None)."""
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    s = str(val).strip()
    return s or None


_ORDER_ALIASES = {
    "id": "id",
    "line": "id",
    "line id": "id",
    "linha": "id",
    "product id": "product_id",
    "sku": "product_id",
    "codigo": "product_id",
    "product": "product_name",
    "product name": "product_name",
    "produto": "product_name",
    "nome": "product_name",
    "quantity": "quantity",
    "qty": "quantity",
    "quantidade": "quantity",
    "qtd": "quantity",
    "qtde": "quantity",
}

_CATALOG_ALIASES = {
    "materials": {
        "id": "id", "material id": "id", "codigo": "id",
        "name": "name", "material": "name", "material name": "name", "nome": "name",
        "category": "category", "categoria": "category", "tipo": "category",
        "is client supplied": "is_client_supplied", "client supplied": "is_client_supplied",
        "is client material": "is_client_supplied", "cliente": "is_client_supplied",
    },
    "formulas": {
        "id": "id", "formula id": "id",
        "name": "name", "formula": "name", "formula name": "name", "nome": "name",
        "version": "version", "versao": "version",
    },
    "formula_items": {
        "formula id": "formula_id", "formula": "formula_id",
        "material id": "material_id", "material": "material_id",
        "qty per unit": "qty_per_unit", "quantity per unit": "qty_per_unit",
        "qtd por unidade": "qty_per_unit", "quantity": "qty_per_unit", "qty": "qty_per_unit",
        "uom": "uom", "unit": "uom", "unidade": "uom",
    },
    "products": {
        "id": "id", "product id": "id", "sku": "id", "codigo": "id",
        "name": "name", "product": "name", "product name": "name", "nome": "name", "produto": "name",
        "formula id": "formula_id",
        "formula name": "formula_name", "formula": "formula_name",
        "packaging type": "packaging_type", "packaging": "packaging_type", "embalagem": "packaging_type",
    },
    "availability": {
        "material id": "material_id", "material": "material_id", "id": "material_id",
        "client qty": "client_qty", "client quantity": "client_qty", "cliente": "client_qty",
        "internal qty": "internal_qty", "internal quantity": "internal_qty", "interno": "internal_qty",
    },
}

_SHEET_ALIASES = {
    "materials": "materials", "material": "materials", "materiais": "materials",
    "formulas": "formulas", "formula": "formulas", "boms": "formulas", "bom": "formulas",
    "formula items": "formula_items", "items": "formula_items", "itens": "formula_items",
    "products": "products", "product": "products", "produtos": "products",
    "availability": "availability", "stock": "availability", "estoque": "availability",
}


def _normalize_columns(df: pd.DataFrame, aliases: Dict[str, str]) -> pd.DataFrame:
    """Renomeia colunas com base em sinônimos/variações."""
    new_cols = {}
    for col in df.columns:
        key = _slug(col)
        new_cols[col] = aliases.get(key, key.replace(" ", "_"))
    return df.rename(columns=new_cols)


def _records(df: pd.DataFrame, keys: List[str]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        rec = {k: _safe_get(row, k) for k in keys}
        if any(v is not None for v in rec.values()):
            out.append(rec)
    return out


# ---------------------------
# loaders públicos (XLSX)
# ---------------------------

def load_order_lines_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de linhas de pedido.

    Campos de saída (chaves do dict por linha):
      - id: str | None (gerado na gravação quando ausente)
      - product_id: str | None
      - product_name: str | None
      - quantity: str | None (bruto; convertido no motor)
    """
    df = pd.read_excel(path, dtype="string")
    df = _normalize_columns(df, _ORDER_ALIASES)
    return _records(df, ["id", "product_id", "product_name", "quantity"])


def load_catalog_from_xlsx(path: str) -> Dict[str, List[Dict[str, Any]]]:
    """Lê a planilha de catálogo (uma aba por entidade)."""
    sheets = pd.read_excel(path, sheet_name=None, dtype="string")
    keys = {
        "materials": ["id", "name", "category", "is_client_supplied"],
        "formulas": ["id", "name", "version"],
        "formula_items": ["formula_id", "material_id", "qty_per_unit", "uom"],
        "products": ["id", "name", "formula_id", "formula_name", "packaging_type"],
        "availability": ["material_id", "client_qty", "internal_qty"],
    }
    out: Dict[str, List[Dict[str, Any]]] = {k: [] for k in keys}
    for sheet_name, df in sheets.items():
        kind = _SHEET_ALIASES.get(_slug(sheet_name))
        if kind is None:
            continue
        df = _normalize_columns(df, _CATALOG_ALIASES[kind])
        out[kind].extend(_records(df, keys[kind]))
    return out
