# Overview: Pytest coverage for catalog lookups and FEFO batch selection.

from datetime import date
from decimal import Decimal

import pytest
from pharmapos.services import catalog_service
from pharmapos.services.catalog_service import CatalogError


TODAY = date(2026, 10, 19)


@pytest.fixture
def batches(make_medicine):
    """Three live batches of one medicine and one expired batch."""
    return {
        "late": make_medicine(name="Omeprazole 20mg", batch_no="OMP-C", quantity=30, expiry_date=date(2027, 6, 30)),
        "early": make_medicine(name="Omeprazole 20mg", batch_no="OMP-A", quantity=10, expiry_date=date(2026, 12, 31)),
        "undated": make_medicine(name="Omeprazole 20mg", batch_no="OMP-X", quantity=5),
        "expired": make_medicine(name="Omeprazole 20mg", batch_no="OMP-OLD", quantity=50, expiry_date=date(2026, 9, 1)),
    }


class TestCatalogLookups:
    def test_list_sellable_items_skips_empty_stock(self, db_session, make_medicine):
        make_medicine(name="Zinc Syrup", batch_no="ZN-1", quantity=0)
        in_stock = make_medicine(name="Azithromycin 500mg", batch_no="AZ-1", quantity=6)

        items = catalog_service.list_sellable_items("medicine")

        assert [i.id for i in items] == [in_stock.id]

    def test_unknown_item_type(self, db_session):
        with pytest.raises(CatalogError):
            catalog_service.list_sellable_items("grocery")

    def test_snapshot_carries_restrictions(self, db_session, make_medicine):
        row = make_medicine(name="Tramadol 50mg", batch_no="TR-1", is_narcotic=True)
        item = catalog_service.to_catalog_item(row)
        assert item.item_type == "medicine"
        assert item.is_controlled is True
        assert item.selling_price == Decimal("10.00")

    def test_cosmetic_snapshot_sells_per_unit(self, db_session, cosmetic):
        item = catalog_service.load_catalog_item("cosmetic", cosmetic.id)
        assert item.item_type == "cosmetic"
        assert item.selling_type == "per_unit"
        assert item.is_fridge_item is False

    def test_load_missing_item(self, db_session):
        assert catalog_service.load_catalog_item("medicine", 99999) is None


class TestFefo:
    def test_nearest_expiry_first(self, db_session, batches):
        result = catalog_service.select_batches_fefo("Omeprazole 20mg", 25, today=TODAY)

        assert [b["batch_no"] for b in result.batches] == ["OMP-A", "OMP-C"]
        assert [b["quantity"] for b in result.batches] == [10, 15]
        assert result.allocated == 25

    def test_expired_batches_excluded(self, db_session, batches):
        result = catalog_service.select_batches_fefo("omeprazole 20MG", 1000, today=TODAY)

        assert "OMP-OLD" not in [b["batch_no"] for b in result.batches]
        assert result.total_available == 45
        # Undated stock is used last
        assert result.batches[-1]["batch_no"] == "OMP-X"

    def test_shortfall_is_visible(self, db_session, batches):
        result = catalog_service.select_batches_fefo("Omeprazole 20mg", 60, today=TODAY)
        assert result.allocated == 45

    def test_best_batch(self, db_session, batches):
        best = catalog_service.best_batch_fefo("Omeprazole 20mg", today=TODAY)
        assert best.batch_no == "OMP-A"

    def test_no_batches(self, db_session):
        assert catalog_service.best_batch_fefo("Nothing", today=TODAY) is None
        assert catalog_service.select_batches_fefo("Nothing", 5, today=TODAY).batches == []


def test_expiry_helpers():
    assert catalog_service.is_expired(date(2026, 10, 18), today=TODAY)
    assert not catalog_service.is_expired(date(2026, 10, 19), today=TODAY)
    assert not catalog_service.is_expired(None, today=TODAY)
    assert catalog_service.is_expiring_within_days(date(2026, 11, 1), 30, today=TODAY)
    assert not catalog_service.is_expiring_within_days(date(2027, 1, 1), 30, today=TODAY)
