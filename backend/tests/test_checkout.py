# Overview: Pytest coverage for the checkout engine (single sale and multi-line checkout).

"""
Checkout Engine Tests

Covers:
- Round trip: two-line checkout, stock decrements, one shared transaction id
- All-or-nothing: a failing line leaves every product's stock untouched
- Duplicate lines merged into one decrement
- Pricing: unit price x quantity exact in cents; missing price rejected
  before any stock moves
- Cashier attribution for staff and owner principals
"""

import pytest

from storetrack.models import Product, Sale, StaffCashier
from storetrack.services import checkout_service
from storetrack.services.checkout_service import (
    InsufficientStockError,
    InvalidPricingError,
    ProductNotFoundError,
    merge_line_items,
)
from storetrack.validation import ValidationError

from conftest import context_for, make_product


def _stock(db_session, product_id):
    return db_session.get(Product, product_id).quantity


class TestCheckoutRoundTrip:

    def test_two_line_checkout_as_owner(self, db_session, owner_a, milk, bread):
        result = checkout_service.checkout(
            context_for(owner_a),
            [{"product": milk.id, "quantity": 2}, {"product": bread.id, "quantity": 1}],
            expected_total=1300,
        )
        body = result.to_dict()

        assert body["transaction"]["total"] == 1300
        assert body["transaction"]["itemsCount"] == 2
        assert body["transaction"]["cashierType"] == "user"
        assert body["transaction"]["cashierUser"] == owner_a.id
        assert body["transaction"]["staff"] is None
        assert body["validation"] == {"clientExpectedTotal": 1300, "serverTotal": 1300, "matches": True}

        assert _stock(db_session, milk.id) == 18
        assert _stock(db_session, bread.id) == 9

        rows = db_session.query(Sale).all()
        assert len(rows) == 2
        assert {row.transaction_id for row in rows} == {result.transaction_id}
        assert len({row.created_at for row in rows}) == 1

    def test_snapshots_written_from_product(self, db_session, owner_a, milk):
        sale = checkout_service.record_single_sale(context_for(owner_a), milk.id, 3)

        assert sale.product_name_snapshot == "Milk"
        assert sale.unit_price_cents == 50000
        assert sale.unit_cost_price_cents == 35000
        assert sale.total_price_cents == 150000
        assert sale.cashier_name_snapshot == "Olivia Owner"
        assert len(sale.transaction_id) == 32

    def test_expected_total_mismatch_does_not_reject(self, db_session, owner_a, milk):
        result = checkout_service.checkout(
            context_for(owner_a), [{"product": milk.id, "quantity": 1}], expected_total=1
        )
        assert result.to_dict()["validation"]["matches"] is False
        assert _stock(db_session, milk.id) == 19

    def test_matches_is_null_without_expected_total(self, db_session, owner_a, milk):
        result = checkout_service.checkout(context_for(owner_a), [{"product": milk.id, "quantity": 1}])
        assert result.to_dict()["validation"] == {
            "clientExpectedTotal": None,
            "serverTotal": 500,
            "matches": None,
        }

    def test_each_single_sale_gets_its_own_transaction(self, db_session, alice, milk):
        auth = context_for(alice)
        first = checkout_service.record_single_sale(auth, milk.id, 1)
        second = checkout_service.record_single_sale(auth, milk.id, 1)
        assert first.transaction_id != second.transaction_id


class TestAtomicity:

    def test_insufficient_stock_leaves_stock_unchanged(self, db_session, owner_a, milk):
        with pytest.raises(InsufficientStockError) as excinfo:
            checkout_service.record_single_sale(context_for(owner_a), milk.id, 25)

        assert excinfo.value.details == {
            "productId": milk.id,
            "productName": "Milk",
            "available": 20,
            "requested": 25,
        }
        assert _stock(db_session, milk.id) == 20
        assert db_session.query(Sale).count() == 0

    def test_failing_second_line_rolls_back_first(self, db_session, owner_a, milk, bread):
        with pytest.raises(InsufficientStockError):
            checkout_service.checkout(
                context_for(owner_a),
                [{"product": milk.id, "quantity": 5}, {"product": bread.id, "quantity": 11}],
            )

        assert _stock(db_session, milk.id) == 20
        assert _stock(db_session, bread.id) == 10
        assert db_session.query(Sale).count() == 0

    def test_unknown_product_in_later_line_rolls_back(self, db_session, owner_a, milk):
        with pytest.raises(ProductNotFoundError) as excinfo:
            checkout_service.checkout(
                context_for(owner_a),
                [{"product": milk.id, "quantity": 1}, {"product": 999999, "quantity": 1}],
            )

        assert excinfo.value.status_code == 404
        assert excinfo.value.details["productId"] == 999999
        assert _stock(db_session, milk.id) == 20

    def test_product_of_another_store_is_not_found(self, db_session, owner_a, foreign_product):
        with pytest.raises(ProductNotFoundError):
            checkout_service.record_single_sale(context_for(owner_a), foreign_product.id, 1)
        assert _stock(db_session, foreign_product.id) == 50


class TestMerge:

    def test_duplicates_merged_in_first_occurrence_order(self):
        lines = merge_line_items([
            {"product": 7, "quantity": 1},
            {"product": 3, "quantity": 2},
            {"product": "7", "quantity": 4},
        ])
        assert [(line.product_id, line.quantity) for line in lines] == [(7, 5), (3, 2)]

    def test_merged_quantity_checked_against_stock(self, db_session, owner_a, bread):
        # 6 + 6 exceeds 10 even though each line alone would fit
        with pytest.raises(InsufficientStockError) as excinfo:
            checkout_service.checkout(
                context_for(owner_a),
                [{"product": bread.id, "quantity": 6}, {"product": bread.id, "quantity": 6}],
            )
        assert excinfo.value.details["requested"] == 12
        assert _stock(db_session, bread.id) == 10

    def test_merged_lines_produce_one_row(self, db_session, owner_a, bread):
        result = checkout_service.checkout(
            context_for(owner_a),
            [{"product": bread.id, "quantity": 2}, {"product": bread.id, "quantity": 3}],
        )
        assert len(result.sales) == 1
        assert result.sales[0].quantity == 5
        assert _stock(db_session, bread.id) == 5

    @pytest.mark.parametrize(
        "items, path",
        [
            ([], "items"),
            (None, "items"),
            ([{"product": 1, "quantity": 0}], "items[0].quantity"),
            ([{"product": 1, "quantity": 1}, {"product": 1, "quantity": 1.5}], "items[1].quantity"),
            ([{"product": "abc", "quantity": 1}], "items[0].product"),
            (["not-an-object"], "items[0]"),
        ],
    )
    def test_invalid_items_name_the_path(self, items, path):
        with pytest.raises(ValidationError) as excinfo:
            merge_line_items(items)
        assert excinfo.value.path == path


class TestPricing:

    def test_decimal_prices_multiply_exactly(self, db_session, owner_a, store_a):
        product = make_product(db_session, store_a, "Gum", 199, 100)
        sale = checkout_service.record_single_sale(context_for(owner_a), product.id, 3)

        assert sale.total_price_cents == 597
        assert sale.to_dict()["totalPrice"] == 5.97
        assert sale.to_dict()["unitPrice"] == 1.99

    def test_tenth_of_cents_never_drift(self, db_session, owner_a, store_a):
        product = make_product(db_session, store_a, "Tea", 10, 1000)
        sale = checkout_service.record_single_sale(context_for(owner_a), product.id, 3)
        assert sale.to_dict()["totalPrice"] == 0.3

    def test_missing_price_rejected_before_decrement(self, db_session, owner_a, store_a):
        product = make_product(db_session, store_a, "Unpriced", None, 5)

        with pytest.raises(InvalidPricingError) as excinfo:
            checkout_service.record_single_sale(context_for(owner_a), product.id, 1)

        assert excinfo.value.details["productId"] == product.id
        assert excinfo.value.details["field"] == "price"
        assert _stock(db_session, product.id) == 5

    def test_unpriced_line_aborts_whole_checkout(self, db_session, owner_a, store_a, milk):
        product = make_product(db_session, store_a, "Unpriced", None, 5)

        with pytest.raises(InvalidPricingError):
            checkout_service.checkout(
                context_for(owner_a),
                [{"product": milk.id, "quantity": 1}, {"product": product.id, "quantity": 1}],
            )
        assert _stock(db_session, milk.id) == 20

    def test_unknown_cost_recorded_as_null(self, db_session, owner_a, store_a):
        product = make_product(db_session, store_a, "Apple", 120, 10)
        sale = checkout_service.record_single_sale(context_for(owner_a), product.id, 1)
        assert sale.unit_cost_price_cents is None
        assert sale.to_dict()["unitCostPrice"] is None

    def test_expected_total_with_three_decimals_only_mismatches(self, db_session, owner_a, milk):
        result = checkout_service.checkout(
            context_for(owner_a), [{"product": milk.id, "quantity": 1}], expected_total=500.004
        )
        assert result.to_dict()["validation"] == {
            "clientExpectedTotal": 500.004,
            "serverTotal": 500,
            "matches": False,
        }
        assert _stock(db_session, milk.id) == 19

    def test_expected_total_equal_with_trailing_zeros_matches(self, db_session, owner_a, milk):
        result = checkout_service.checkout(
            context_for(owner_a), [{"product": milk.id, "quantity": 1}], expected_total="500.000"
        )
        assert result.matches is True

    def test_non_numeric_expected_total_rejected(self, db_session, owner_a, milk):
        for bad in (True, "abc", "NaN", "Infinity", [500]):
            with pytest.raises(ValidationError) as excinfo:
                checkout_service.checkout(
                    context_for(owner_a), [{"product": milk.id, "quantity": 1}], expected_total=bad
                )
            assert excinfo.value.path == "client.expectedTotal"
        assert _stock(db_session, milk.id) == 20

    def test_oversized_ids_and_quantities_rejected(self, db_session, owner_a, milk):
        with pytest.raises(ValidationError) as excinfo:
            checkout_service.checkout(context_for(owner_a), [{"product": 10**20, "quantity": 1}])
        assert excinfo.value.path == "items[0].product"

        with pytest.raises(ValidationError) as excinfo:
            checkout_service.checkout(context_for(owner_a), [{"product": milk.id, "quantity": 10**20}])
        assert excinfo.value.path == "items[0].quantity"
        assert _stock(db_session, milk.id) == 20


class TestAttribution:

    def test_staff_is_always_credited_themselves(self, db_session, alice, bob, milk):
        sale = checkout_service.record_single_sale(context_for(alice), milk.id, 1, staff=bob.id)

        assert sale.cashier_type == "staff"
        assert sale.staff_id == alice.id
        assert sale.cashier_user_id is None
        assert sale.cashier_name_snapshot == "Alice"
        assert sale.attribution == StaffCashier(id=alice.id, name="Alice")

    def test_owner_must_not_name_staff(self, db_session, owner_a, alice, milk):
        with pytest.raises(ValidationError) as excinfo:
            checkout_service.checkout(
                context_for(owner_a), [{"product": milk.id, "quantity": 1}], staff=alice.id
            )
        assert excinfo.value.path == "staff"
        assert _stock(db_session, milk.id) == 20

    def test_every_row_has_exactly_one_cashier(self, db_session, owner_a, alice, milk, bread):
        checkout_service.checkout(context_for(owner_a), [{"product": milk.id, "quantity": 1}])
        checkout_service.checkout(context_for(alice), [{"product": bread.id, "quantity": 1}])

        for row in db_session.query(Sale).all():
            if row.cashier_type == "staff":
                assert row.staff_id is not None and row.cashier_user_id is None
            else:
                assert row.cashier_type == "user"
                assert row.cashier_user_id is not None and row.staff_id is None
