# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that one store can never read or change another
store's data. Foreign rows are reported as not found, never as forbidden,
so their existence is not revealed.

Test Coverage:
- Products: cross-tenant read/update/delete/sell blocked
- Sales: listings, transaction detail and receipts scoped to the caller
- Staff: directory and deletion scoped to the caller
- Sessions: token carries the store it was issued for
"""

from storetrack.models import Product, Staff
from storetrack.services import checkout_service, transaction_service

from conftest import context_for, headers_for


class TestProductIsolation:

    def test_cannot_read_foreign_product(self, client, db_session, owner_a, foreign_product):
        response = client.get(f'/api/products/{foreign_product.id}', headers=headers_for(owner_a))
        assert response.status_code == 404

    def test_listing_excludes_foreign_products(self, client, db_session, owner_a, milk, foreign_product):
        response = client.get('/api/products', headers=headers_for(owner_a))
        assert [p["id"] for p in response.json["data"]] == [milk.id]

    def test_cannot_update_foreign_product(self, client, db_session, owner_a, foreign_product):
        response = client.put(
            f'/api/products/{foreign_product.id}',
            headers=headers_for(owner_a),
            json={"quantity": 0},
        )
        assert response.status_code == 404
        assert db_session.get(Product, foreign_product.id).quantity == 50

    def test_cannot_delete_foreign_product(self, client, db_session, owner_a, foreign_product):
        response = client.delete(f'/api/products/{foreign_product.id}', headers=headers_for(owner_a))
        assert response.status_code == 404
        assert db_session.get(Product, foreign_product.id) is not None

    def test_cannot_sell_foreign_product(self, client, db_session, owner_a, foreign_product):
        response = client.post(
            '/api/sales',
            headers=headers_for(owner_a),
            json={"product": foreign_product.id, "quantity": 1},
        )
        assert response.status_code == 404
        assert db_session.get(Product, foreign_product.id).quantity == 50


class TestSalesIsolation:

    def test_listings_only_show_own_store(self, db_session, owner_a, owner_b, milk, foreign_product):
        checkout_service.record_single_sale(context_for(owner_a), milk.id, 1)
        checkout_service.record_single_sale(context_for(owner_b), foreign_product.id, 1)

        sales_a = transaction_service.list_sales(context_for(owner_a))
        assert sales_a["meta"]["total"] == 1
        assert sales_a["data"][0]["product"] == milk.id

        tx_b = transaction_service.list_transactions(context_for(owner_b))
        assert tx_b["meta"]["total"] == 1

    def test_foreign_transaction_is_not_found(self, client, db_session, owner_a, owner_b, foreign_product):
        sale = checkout_service.record_single_sale(context_for(owner_b), foreign_product.id, 1)

        headers = headers_for(owner_a)
        detail = client.get(f'/api/sales/transactions/{sale.transaction_id}', headers=headers)
        receipt = client.get(f'/api/sales/transactions/{sale.transaction_id}/receipt', headers=headers)
        assert detail.status_code == 404
        assert receipt.status_code == 404

    def test_foreign_legacy_row_id_is_not_found(self, client, db_session, owner_a, owner_b, foreign_product):
        sale = checkout_service.record_single_sale(context_for(owner_b), foreign_product.id, 1)
        response = client.get(f'/api/sales/transactions/{sale.id}', headers=headers_for(owner_a))
        assert response.status_code == 404


class TestStaffIsolation:

    def test_directory_scoped_to_store(self, client, db_session, owner_a, owner_b, alice):
        response = client.get('/api/staff', headers=headers_for(owner_b))
        assert response.status_code == 200
        assert response.json["data"] == []

    def test_cannot_delete_foreign_staff(self, client, db_session, owner_b, alice):
        response = client.delete(f'/api/staff/{alice.id}', headers=headers_for(owner_b))
        assert response.status_code == 404
        assert db_session.get(Staff, alice.id) is not None

    def test_owner_creates_staff_in_own_store(self, client, db_session, owner_a):
        response = client.post('/api/staff', headers=headers_for(owner_a), json={
            "name": "New Hire", "email": "hire@corner.test", "password": "Password123!",
        })
        assert response.status_code == 201
        assert response.json["store"] == owner_a.store_id

    def test_deleting_staff_keeps_their_sales(self, client, db_session, owner_a, alice, milk):
        sale = checkout_service.record_single_sale(context_for(alice), milk.id, 1)
        alice_headers = headers_for(alice)

        response = client.delete(f'/api/staff/{alice.id}', headers=headers_for(owner_a))
        assert response.status_code == 200

        # Their sessions are revoked
        assert client.get('/api/auth/me', headers=alice_headers).status_code == 401

        detail = client.get(f'/api/sales/transactions/{sale.transaction_id}', headers=headers_for(owner_a))
        assert detail.status_code == 200
        assert detail.json["transaction"]["cashierName"] == "Alice"
