"""
Arithmetic of the bill-of-materials explosion.

These functions implement the per-item explosion (ordered quantity times
quantity per unit), the accumulation of exploded items into material
buckets and the allocation of supply against a requirement.

All functions are pure: they depend solely on their inputs and, apart
from ``accumulate`` which updates the bucket it is given, do not modify
any external state. This makes them safe to unit test individually and
to run concurrently for independent batches.
"""

from typing import Dict, Iterable, List, Tuple

from bomcalc.domain.models import ExplodedItem, MaterialRequirement


def explode(quantity: float, qty_per_unit: float) -> float:
    """Return the material quantity required for an order line.

    Both arguments are expected to be already coerced to non-negative
    floats (see ``bomcalc.adapters.parsers.to_qty``).
    """
    return float(quantity) * float(qty_per_unit)


def accumulate(bucket: Dict[str, MaterialRequirement], item: ExplodedItem, is_client_material: bool = False) -> None:
    """Add an exploded item to its material bucket.

    Parameters
    ----------
    bucket: dict
        Material id -> ``MaterialRequirement``, one entry per material.
    item: ExplodedItem
        The exploded formula item of one order line.
    is_client_material: bool
        Whether the client supplies this material.
    """
    prev = bucket.get(item.material_id)
    if prev is None:
        bucket[item.material_id] = MaterialRequirement(
            material_id=item.material_id,
            material_name=item.material_name or item.material_id,
            category=item.category,
            uom=item.uom or "",
            is_client_material=is_client_material,
            required_qty=item.required_qty,
        )
        return
    prev.required_qty += item.required_qty


def sort_by_material_name(reqs: Iterable[MaterialRequirement]) -> List[MaterialRequirement]:
    """Deterministic presentation order: display name, then id."""
    return sorted(reqs, key=lambda r: (str(r.material_name or "").lower(), str(r.material_id)))


def allocate(required: float, available: float) -> Tuple[float, float]:
    """Allocate available supply against a requirement.

    Returns
    -------
    tuple
        ``(allocated, shortfall)`` with ``allocated <= required`` and
        ``shortfall == required - allocated`` (never negative).
    """
    required = float(required)
    allocated = min(required, max(0.0, float(available)))
    return allocated, required - allocated
