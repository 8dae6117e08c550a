# tests/services/test_item_catalog.py
from __future__ import annotations

import pytest

from stocktake.core.errors import InvalidInput
from stocktake.services.item_catalog import ItemCatalog
from tests.helpers.stocktake import ORG

pytestmark = pytest.mark.grp_session


@pytest.mark.asyncio
async def test_load_creates_pending_and_skips_known_sku(session, seed):
    r = await ItemCatalog().load_items(
        session,
        organization_id=ORG,
        rows=[
            {"sku": " SKU-N1 ", "name": "Light Stand", "expected_qty": "3", "location": "Annex"},
            {"sku": "SKU-R1", "name": "Camera Body", "expected_qty": 99, "location": "Annex"},
            {"sku": "SKU-N1", "name": "Dup in batch", "location": "Annex"},
        ],
    )
    assert [it.sku for it in r.created] == ["SKU-N1"]
    assert r.skipped_skus == ["SKU-R1", "SKU-N1"]

    item = r.created[0]
    assert item.status == "pending"
    assert item.expected_qty == 3
    assert item.counted_qty is None
    assert item.variance is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "row",
    [
        {"sku": "SKU-B1", "name": "No location"},
        {"sku": "SKU-B2", "name": "Bad qty", "location": "Annex", "expected_qty": "lots"},
        {"sku": "SKU-B3", "name": "Negative", "location": "Annex", "expected_qty": -1},
    ],
)
async def test_bad_rows_rejected(session, row):
    with pytest.raises(InvalidInput):
        await ItemCatalog().load_items(session, organization_id=ORG, rows=[row])
