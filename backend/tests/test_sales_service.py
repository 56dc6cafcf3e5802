# Overview: Pytest coverage for sale commit, validation codes, and sale queries.

"""
Sale Commit Tests

A commit writes the sale, its lines, the stock decrements and the loyalty
accrual together. Every rejection below must leave no trace in the
database.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError
from pharmapos.extensions import db
from pharmapos.models import Sale, SaleItem, Medicine, Customer
from pharmapos.services import sales_service
from pharmapos.services.cart import Cart, BoundRow
from pharmapos.services.sales_service import (
    SaleValidationError,
    StockConflictError,
    SalePersistenceError,
)

from conftest import cart_with


def _nothing_written():
    return db.session.query(Sale).count() == 0 and db.session.query(SaleItem).count() == 0


class TestCommitSale:
    def test_reference_sale(self, db_session, salesman, medicine):
        """5 units at 10.00, 10% discount, 20.00 tax."""
        medicine_id = medicine.id
        cart = cart_with((medicine, 5))

        sale = sales_service.commit_sale(cart, salesman.id, discount_percentage=10, tax=20)

        assert sale.subtotal == Decimal("50.00")
        assert sale.discount_amount == Decimal("5.00")
        assert sale.total_amount == Decimal("65.00")
        assert sale.total_profit == Decimal("20.00")
        assert sale.loyalty_points_earned == 0
        assert sale.return_status == "none"
        assert sale.salesman_name == "Counter One"
        assert sale.receipt_number.startswith("RX-")
        assert len(sale.items) == 1

        line = sale.items[0]
        assert line.quantity == 5
        assert line.unit_price == Decimal("10.0000")
        assert line.total_price == Decimal("50.00")
        assert line.profit == Decimal("20.00")
        assert line.return_quantity == 0

        assert db.session.get(Medicine, medicine_id).quantity == 15

    def test_empty_rows_are_skipped(self, db_session, salesman, medicine):
        cart = cart_with((medicine, 2))
        cart.add_row()

        sale = sales_service.commit_sale(cart, salesman.id)

        assert len(sale.items) == 1
        assert sale.total_amount == Decimal("20.00")

    def test_per_pack_sale_takes_base_units(self, db_session, salesman, pack_medicine):
        medicine_id = pack_medicine.id
        cart = cart_with((pack_medicine, 3))

        sale = sales_service.commit_sale(cart, salesman.id)

        line = sale.items[0]
        assert line.selling_mode == "per_pack"
        assert line.total_packs == 3
        assert line.total_base_units == 30
        assert line.units_per_pack == 10
        assert line.total_price == Decimal("270.00")
        # 3 x (90 - 10 x 6)
        assert line.profit == Decimal("90.00")
        assert db.session.get(Medicine, medicine_id).quantity == 70

    def test_selling_exact_stock_leaves_zero(self, db_session, salesman, medicine):
        medicine_id = medicine.id
        sales_service.commit_sale(cart_with((medicine, 20)), salesman.id)
        assert db.session.get(Medicine, medicine_id).quantity == 0

    def test_restricted_flags_snapshot(self, db_session, salesman, fridge_medicine):
        sale = sales_service.commit_sale(cart_with((fridge_medicine, 1)), salesman.id)
        assert sale.items[0].is_fridge_item is True

    def test_mixed_item_types(self, db_session, salesman, medicine, cosmetic):
        sale = sales_service.commit_sale(cart_with((medicine, 1), (cosmetic, 2)), salesman.id)
        assert {i.item_type for i in sale.items} == {"medicine", "cosmetic"}
        assert sale.total_amount == Decimal("1910.00")

    def test_receipt_numbers_are_unique(self, db_session, salesman, medicine):
        first = sales_service.commit_sale(cart_with((medicine, 1)), salesman.id)
        second = sales_service.commit_sale(cart_with((medicine, 1)), salesman.id)
        assert first.receipt_number != second.receipt_number


class TestStoredAggregates:
    def test_sub_cent_rates_match_stored_lines(self, db_session, salesman, make_medicine):
        """Aggregates are summed from the cent-rounded line amounts."""
        items = [make_medicine(name=f"Vitamin B{n}", batch_no=f"VB-{n}") for n in range(4)]
        cart = cart_with(*[(item, 1) for item in items])
        for index in range(len(items)):
            cart.set_unit_price(index, "0.125")

        sale = sales_service.commit_sale(cart, salesman.id)

        assert sale.subtotal == sum(i.total_price for i in sale.items)
        assert sale.total_profit == sum(i.profit for i in sale.items)
        assert sale.subtotal == Decimal("0.52")
        assert sale.total_amount == Decimal("0.52")
        assert sale.total_profit == Decimal("-23.52")

    def test_back_computed_rates_match_stored_lines(self, db_session, salesman, make_medicine):
        first = make_medicine(name="Ibuprofen 400mg", batch_no="IBU-1")
        second = make_medicine(name="Loratadine 10mg", batch_no="LOR-1")
        cart = cart_with((first, 3), (second, 7))
        cart.set_total_price(0, "10.00")
        cart.set_total_price(1, "10.00")

        sale = sales_service.commit_sale(cart, salesman.id, discount_percentage=5)

        assert sale.subtotal == sum(i.total_price for i in sale.items)
        assert sale.total_profit == sum(i.profit for i in sale.items)
        assert sale.total_amount == sale.subtotal - sale.discount_amount + sale.tax

    def test_discount_uses_stored_percentage(self, db_session, salesman, cosmetic):
        sale = sales_service.commit_sale(cart_with((cosmetic, 1)), salesman.id, discount_percentage="0.125")

        assert sale.discount_percentage == Decimal("0.13")
        # 950.00 x 0.13%
        assert sale.discount_amount == Decimal("1.24")
        assert sale.total_amount == Decimal("948.76")


class TestLoyalty:
    def test_customer_accrues_points(self, db_session, salesman, customer, cosmetic):
        customer_id = customer.id

        sale = sales_service.commit_sale(cart_with((cosmetic, 1)), salesman.id, customer_id=customer_id)

        assert sale.loyalty_points_earned == 9
        assert sale.customer_name == "Ayesha Khan"
        stored = db.session.get(Customer, customer_id)
        assert stored.loyalty_points == 9
        assert stored.total_purchases == 1
        assert stored.total_spent == Decimal("950.00")

    def test_walk_in_sale_has_no_customer(self, db_session, salesman, cosmetic):
        sale = sales_service.commit_sale(cart_with((cosmetic, 1)), salesman.id)
        assert sale.customer_id is None
        assert sale.loyalty_points_earned == 9

    def test_points_floor(self, app):
        with app.app_context():
            assert sales_service.loyalty_points_for(Decimal("199.99")) == 1
            assert sales_service.loyalty_points_for(Decimal("65")) == 0
            assert sales_service.loyalty_points_for(Decimal("-5")) == 0


class TestValidation:
    def test_empty_cart(self, db_session, salesman):
        cart = Cart()
        cart.add_row()
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart, salesman.id)
        assert exc.value.code == "EMPTY_CART"

    def test_salesman_required(self, db_session, medicine):
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart_with((medicine, 1)), None)
        assert exc.value.code == "SALESMAN_REQUIRED"
        assert _nothing_written()

    def test_unknown_salesman(self, db_session, medicine):
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart_with((medicine, 1)), 424242)
        assert exc.value.code == "SALESMAN_NOT_FOUND"

    def test_unknown_customer(self, db_session, salesman, medicine):
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart_with((medicine, 1)), salesman.id, customer_id=424242)
        assert exc.value.code == "CUSTOMER_NOT_FOUND"

    def test_total_mismatch_reports_expected_total(self, db_session, salesman, medicine):
        medicine_id = medicine.id
        cart = cart_with((medicine, 5))
        row = cart.rows[0]
        cart.rows[0] = BoundRow(
            item=row.item, mode=row.mode, quantity=5,
            unit_price=Decimal("10.00"), total_price=Decimal("45.00"),
        )

        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart, salesman.id)

        assert exc.value.code == "TOTAL_MISMATCH"
        assert exc.value.details["expected_total"] == "50.00"
        assert exc.value.details["actual_total"] == "45.00"
        assert "50.00" in str(exc.value)
        assert _nothing_written()
        assert db.session.get(Medicine, medicine_id).quantity == 20

    def test_back_computed_rate_within_tolerance(self, db_session, salesman, medicine):
        cart = cart_with((medicine, 3))
        cart.set_total_price(0, "10.00")

        sale = sales_service.commit_sale(cart, salesman.id)

        assert sale.total_amount == Decimal("10.00")
        assert sale.items[0].unit_price == Decimal("3.3333")

    def test_invalid_quantity(self, db_session, salesman, medicine):
        cart = cart_with((medicine, 1))
        row = cart.rows[0]
        cart.rows[0] = BoundRow(item=row.item, mode=row.mode, quantity=0,
                                unit_price=row.unit_price, total_price=Decimal("0"))
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart, salesman.id)
        assert exc.value.code == "INVALID_QUANTITY"

    def test_negative_unit_price(self, db_session, salesman, medicine):
        cart = cart_with((medicine, 1))
        row = cart.rows[0]
        cart.rows[0] = BoundRow(item=row.item, mode=row.mode, quantity=1,
                                unit_price=Decimal("-1"), total_price=Decimal("-1"))
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart, salesman.id)
        assert exc.value.code == "INVALID_UNIT_PRICE"

    def test_insufficient_stock(self, db_session, salesman, medicine):
        medicine_id = medicine.id
        with pytest.raises(StockConflictError) as exc:
            sales_service.commit_sale(cart_with((medicine, 21)), salesman.id)

        assert exc.value.code == "INSUFFICIENT_STOCK"
        assert exc.value.status_code == 409
        assert exc.value.details["items"][0]["on_hand"] == 20
        assert _nothing_written()
        assert db.session.get(Medicine, medicine_id).quantity == 20

    def test_demand_summed_across_rows(self, db_session, salesman, medicine):
        with pytest.raises(StockConflictError):
            sales_service.commit_sale(cart_with((medicine, 12), (medicine, 9)), salesman.id)
        assert _nothing_written()

    def test_stale_snapshot_checked_against_live_stock(self, db_session, salesman, medicine):
        cart = cart_with((medicine, 5))
        medicine.quantity = 3
        db_session.commit()

        with pytest.raises(StockConflictError):
            sales_service.commit_sale(cart, salesman.id)

    def test_deleted_item(self, db_session, salesman, medicine):
        cart = cart_with((medicine, 1))
        db_session.delete(medicine)
        db_session.commit()

        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart, salesman.id)
        assert exc.value.code == "ITEM_NOT_FOUND"

    def test_invalid_discount(self, db_session, salesman, medicine):
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart_with((medicine, 1)), salesman.id, discount_percentage=101)
        assert exc.value.code == "INVALID_DISCOUNT"

    def test_negative_tax(self, db_session, salesman, medicine):
        with pytest.raises(SaleValidationError) as exc:
            sales_service.commit_sale(cart_with((medicine, 1)), salesman.id, tax=-1)
        assert exc.value.code == "INVALID_TAX"


class TestAtomicity:
    def test_lost_race_writes_nothing(self, db_session, salesman, medicine, monkeypatch):
        """Another terminal takes the stock between validation and the decrement."""
        medicine_id = medicine.id
        monkeypatch.setattr(sales_service, "_validate_live_stock", lambda cart: None)
        medicine.quantity = 4
        db_session.commit()

        with pytest.raises(StockConflictError):
            sales_service.commit_sale(cart_with((medicine, 5)), salesman.id)

        assert _nothing_written()
        assert db.session.get(Medicine, medicine_id).quantity == 4

    def test_storage_failure_rolls_back_everything(self, db_session, salesman, customer, medicine, monkeypatch):
        medicine_id = medicine.id
        customer_id = customer.id

        def _fail(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(sales_service, "apply_loyalty_accrual", _fail)

        with pytest.raises(SalePersistenceError) as exc:
            sales_service.commit_sale(cart_with((medicine, 5)), salesman.id, customer_id=customer_id)

        assert exc.value.status_code == 500
        assert _nothing_written()
        assert db.session.get(Medicine, medicine_id).quantity == 20
        assert db.session.get(Customer, customer_id).total_purchases == 0


class TestSaleQueries:
    def test_summary_and_lookup_by_receipt(self, db_session, salesman, medicine):
        sale = sales_service.commit_sale(cart_with((medicine, 2)), salesman.id)

        summary = sales_service.get_sale_summary(sale.id)
        assert summary["sale"]["receipt_number"] == sale.receipt_number
        assert len(summary["items"]) == 1
        assert summary["returns"] == []
        assert sales_service.get_sale_by_receipt(sale.receipt_number).id == sale.id

    def test_summary_missing_sale(self, db_session):
        with pytest.raises(SaleValidationError):
            sales_service.get_sale_summary(99999)

    def test_list_sales_filters(self, db_session, salesman, customer, medicine):
        sales_service.commit_sale(cart_with((medicine, 1)), salesman.id)
        mine = sales_service.commit_sale(cart_with((medicine, 1)), salesman.id, customer_id=customer.id)

        assert len(sales_service.list_sales()) == 2
        assert [s.id for s in sales_service.list_sales(customer_id=customer.id)] == [mine.id]

    def test_customer_purchase_history(self, db_session, salesman, customer, medicine):
        customer_id = customer.id
        sales_service.commit_sale(cart_with((medicine, 2)), salesman.id, customer_id=customer_id)
        sales_service.commit_sale(cart_with((medicine, 3)), salesman.id, customer_id=customer_id)

        history = sales_service.get_customer_purchase_history(customer_id)

        assert history["total_sales"] == 2
        assert history["total_amount"] == "50.00"
        assert history["customer"]["id"] == customer_id
