import pytest

from bomcalc.domain.explosion import accumulate, allocate, explode, sort_by_material_name
from bomcalc.domain.models import (
    AllocationStatus,
    AllocationSummary,
    ExplodedItem,
    MaterialCategory,
    RemediationQueue,
    ShortfallLine,
)
from bomcalc.domain.policies import (
    derive_status,
    is_fully_backordered,
    line_status,
    remediation_queues,
    requires_full_materials,
)


@pytest.mark.parametrize(
    "allocated,shortfall,exp",
    [
        (25.0, 0.0, AllocationStatus.ALLOCATED),
        (0.0, 0.0, AllocationStatus.ALLOCATED),
        (0.0, 15.0, AllocationStatus.BACKORDERED),
        (10.0, 15.0, AllocationStatus.PARTIAL),
    ],
)
def test_derive_status(allocated, shortfall, exp):
    assert derive_status(allocated, shortfall) == exp


@pytest.mark.parametrize(
    "required,allocated,shortfall,exp",
    [
        (10, 0, 10, "backordered"),
        (10, 4, 6, "partial"),
        (10, 10, 0, "allocated"),
        (0, 0, 0, "pending"),
    ],
)
def test_line_status(required, allocated, shortfall, exp):
    assert line_status(required, allocated, shortfall) == exp


def test_allocate_never_exceeds_required():
    assert allocate(25, 10) == (10.0, 15.0)
    assert allocate(25, 40) == (25.0, 0.0)
    assert allocate(5, -3) == (0.0, 5.0)


def test_accumulate_sums_per_material():
    bucket = {}
    item = ExplodedItem("M", "Resina", MaterialCategory.RAW, 2.0, "kg", explode(10, 2.0))
    accumulate(bucket, item)
    accumulate(bucket, ExplodedItem("M", "Resina", MaterialCategory.RAW, 1.0, "kg", explode(5, 1.0)))
    assert list(bucket) == ["M"]
    assert bucket["M"].required_qty == 25.0


def test_sort_by_material_name_is_case_insensitive():
    bucket = {}
    for mid, name in (("2", "beta"), ("1", "Alpha"), ("3", "alpha")):
        accumulate(bucket, ExplodedItem(mid, name, MaterialCategory.RAW, 1, "", 1))
    assert [r.material_id for r in sort_by_material_name(bucket.values())] == ["1", "3", "2"]


def _line(subject, shortfall, allocated=0.0, client=False):
    return ShortfallLine(
        subject=subject,
        required_qty=allocated + shortfall,
        allocated_qty=allocated,
        shortfall_qty=shortfall,
        is_client_material=client,
        material_id=subject,
    )


def test_remediation_queues_partition_shortfall_lines():
    lines = [_line("M", 15, 10), _line("C", 5, client=True), _line("P", 0, 5)]
    queues = remediation_queues(lines)
    assert [ln.subject for ln in queues[RemediationQueue.CLIENT_REQUEST]] == ["C"]
    assert [ln.subject for ln in queues[RemediationQueue.PURCHASE_REQUISITION]] == ["M"]


def test_bundle_gate_and_backorder_advisory():
    short = AllocationSummary("PO-1", AllocationStatus.BACKORDERED, 5, 0, 5, [_line("X", 5)])
    full = AllocationSummary("PO-1", AllocationStatus.ALLOCATED, 5, 5, 0, [_line("X", 0, 5)])

    assert requires_full_materials("Kit", short)
    assert not requires_full_materials("kit", full)
    assert not requires_full_materials(None, short)
    assert requires_full_materials("box", short, bundle_types=("box",))

    assert is_fully_backordered(short)
    assert not is_fully_backordered(full)
    assert not is_fully_backordered(AllocationSummary("PO-1", AllocationStatus.ALLOCATED))
