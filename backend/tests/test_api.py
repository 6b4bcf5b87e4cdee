"""
HTTP-level tests: operator identification, permissions, and the
cart -> checkout -> return flow through the API.
"""

import pytest

from pharmapos.decorators import require_permission


@pytest.fixture
def stocked(make_batch):
    """Two lots of a product plus a multi-unit pack product."""
    return {
        "soon": make_batch("Panadol 500mg", price="20.00", expiry_days=30),
        "late": make_batch("Panadol 500mg", price="20.00", expiry_days=300),
        "strip": make_batch("Brufen 400mg", price="30.00", units_per_pack=10, stock=2),
    }


def _new_cart(client, headers, operator):
    response = client.post('/api/carts', json={}, headers=headers(operator))
    assert response.status_code == 201
    return response.json["cart"]["id"]


class TestOperatorIdentification:
    """Every business route needs a known, active operator."""

    def test_health_needs_no_operator(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["status"] == "healthy"

    def test_missing_operator_header(self, client, db_session):
        response = client.post('/api/carts', json={})
        assert response.status_code == 401

    def test_unknown_operator(self, client, db_session):
        response = client.post('/api/carts', json={}, headers={'X-Operator-Id': '424242'})
        assert response.status_code == 401

    def test_malformed_operator_id(self, client, db_session):
        response = client.post('/api/carts', json={}, headers={'X-Operator-Id': '1.5'})
        assert response.status_code == 401


class TestPermissions:
    def test_delivery_cannot_open_carts(self, client, headers, make_operator):
        driver = make_operator("delivery")

        response = client.post('/api/carts', json={}, headers=headers(driver))

        assert response.status_code == 403
        assert response.json["required_permission"] == "CREATE_SALE"

    def test_cashier_cannot_discount(self, client, headers, cashier):
        cart_id = _new_cart(client, headers, cashier)

        response = client.put(f'/api/carts/{cart_id}/discount', json={"percent": 10}, headers=headers(cashier))

        assert response.status_code == 403

    def test_cashier_cannot_discount_lines(self, client, headers, cashier, stocked):
        cart_id = _new_cart(client, headers, cashier)
        batch_id = stocked["soon"].id
        client.post(f'/api/carts/{cart_id}/lines', json={"batch_id": batch_id}, headers=headers(cashier))

        response = client.patch(
            f'/api/carts/{cart_id}/lines/{batch_id}', json={"discount_percent": 5}, headers=headers(cashier)
        )

        assert response.status_code == 403

    def test_permission_listing_follows_role(self, client, headers, cashier):
        response = client.get('/api/permissions', headers=headers(cashier))

        assert response.status_code == 200
        assert response.json["role"] == "cashier"
        assert "PROCESS_RETURN" in response.json["permissions"]
        assert "APPLY_DISCOUNT" not in response.json["permissions"]
        assert "ADMIN" not in response.json["by_category"]
        assert response.json["by_category"]["RETURNS"][0]["name"] == "Process Return"

    def test_unknown_permission_code_fails_fast(self):
        with pytest.raises(ValueError):
            require_permission("NOT_A_PERMISSION")


class TestCatalogRoutes:
    def test_search_groups_batches_by_product(self, client, headers, owner, stocked):
        response = client.get('/api/catalog/products?q=panadol', headers=headers(owner))

        assert response.status_code == 200
        [product] = response.json["products"]
        assert product["product_name"] == "Panadol 500mg"
        assert [b["id"] for b in product["batches"]] == [stocked["soon"].id, stocked["late"].id]

    def test_select_batch_is_fefo(self, client, headers, owner, stocked):
        response = client.post(
            '/api/catalog/select-batch', json={"product_name": "Panadol 500mg"}, headers=headers(owner)
        )

        assert response.status_code == 200
        assert response.json["batch"]["id"] == stocked["soon"].id

    def test_unknown_batch(self, client, headers, owner, db_session):
        response = client.get('/api/catalog/batches/999999', headers=headers(owner))
        assert response.status_code == 404


class TestCartRoutes:
    def test_rejected_edit_answers_unchanged_cart(self, client, headers, owner, stocked):
        cart_id = _new_cart(client, headers, owner)
        batch_id = stocked["strip"].id
        client.post(f'/api/carts/{cart_id}/lines', json={"batch_id": batch_id}, headers=headers(owner))

        response = client.patch(
            f'/api/carts/{cart_id}/lines/{batch_id}', json={"quantity": 3}, headers=headers(owner)
        )

        assert response.status_code == 200
        assert response.json["applied"] is False
        assert response.json["cart"]["lines"][0]["quantity"] == 1

    def test_unit_mode_line_and_toggle(self, client, headers, owner, stocked):
        cart_id = _new_cart(client, headers, owner)
        batch_id = stocked["strip"].id
        client.post(
            f'/api/carts/{cart_id}/lines', json={"batch_id": batch_id, "is_unit_mode": True}, headers=headers(owner)
        )

        response = client.patch(
            f'/api/carts/{cart_id}/lines/{batch_id}',
            json={"is_unit_mode": True, "quantity": 15},
            headers=headers(owner),
        )
        assert response.json["applied"] is True
        assert response.json["cart"]["total"] == "45.00"

        response = client.patch(
            f'/api/carts/{cart_id}/lines/{batch_id}',
            json={"is_unit_mode": True, "toggle_unit_mode": True},
            headers=headers(owner),
        )
        line = response.json["cart"]["lines"][0]
        assert line["is_unit_mode"] is False
        assert line["quantity"] == 1

    def test_patch_requires_one_action(self, client, headers, owner, stocked):
        cart_id = _new_cart(client, headers, owner)
        batch_id = stocked["soon"].id
        client.post(f'/api/carts/{cart_id}/lines', json={"batch_id": batch_id}, headers=headers(owner))

        response = client.patch(
            f'/api/carts/{cart_id}/lines/{batch_id}', json={"quantity": 2, "delta": 1}, headers=headers(owner)
        )

        assert response.status_code == 400

    def test_remove_unit_line_by_query_flag(self, client, headers, owner, stocked):
        cart_id = _new_cart(client, headers, owner)
        batch_id = stocked["strip"].id
        client.post(f'/api/carts/{cart_id}/lines', json={"batch_id": batch_id}, headers=headers(owner))
        client.post(
            f'/api/carts/{cart_id}/lines', json={"batch_id": batch_id, "is_unit_mode": True}, headers=headers(owner)
        )

        response = client.delete(
            f'/api/carts/{cart_id}/lines/{batch_id}?is_unit_mode=true', headers=headers(owner)
        )

        assert response.json["applied"] is True
        assert [line["is_unit_mode"] for line in response.json["cart"]["lines"]] == [False]

    def test_checkout_of_empty_cart(self, client, headers, owner, db_session):
        cart_id = _new_cart(client, headers, owner)

        response = client.post(f'/api/carts/{cart_id}/checkout', json={"payment_method": "cash"}, headers=headers(owner))

        assert response.status_code == 200
        assert response.json["sale"] is None

    def test_checkout_rejects_unknown_payment_method(self, client, headers, owner, stocked):
        cart_id = _new_cart(client, headers, owner)
        client.post(f'/api/carts/{cart_id}/lines', json={"product_name": "Panadol 500mg"}, headers=headers(owner))

        response = client.post(
            f'/api/carts/{cart_id}/checkout', json={"payment_method": "bitcoin"}, headers=headers(owner)
        )

        assert response.status_code == 400
        assert "card" in response.json["allowed"]

    def test_customer_set_on_cart_reaches_the_sale(self, client, headers, owner, stocked):
        cart_id = _new_cart(client, headers, owner)
        client.post(f'/api/carts/{cart_id}/lines', json={"product_name": "Panadol 500mg"}, headers=headers(owner))

        response = client.patch(
            f'/api/carts/{cart_id}', json={"customer_name": "  Mona ", "customer_code": "C-104"}, headers=headers(owner)
        )
        assert response.status_code == 200
        assert response.json["cart"]["customer_name"] == "Mona"

        response = client.post(f'/api/carts/{cart_id}/checkout', json={}, headers=headers(owner))

        assert response.status_code == 201
        assert response.json["sale"]["customer_name"] == "Mona"
        assert response.json["sale"]["customer_code"] == "C-104"

    def test_customer_update_needs_a_field(self, client, headers, owner, db_session):
        cart_id = _new_cart(client, headers, owner)

        response = client.patch(f'/api/carts/{cart_id}', json={"name": "Tab 2"}, headers=headers(owner))

        assert response.status_code == 400

    def test_unknown_cart(self, client, headers, owner, db_session):
        response = client.post('/api/carts/999999/lines', json={"product_name": "x"}, headers=headers(owner))
        assert response.status_code == 404


class TestSaleAndReturnFlow:
    def _sell(self, client, headers, operator, product="Panadol 500mg", quantity=5, discount=None):
        cart_id = _new_cart(client, headers, operator)
        response = client.post(f'/api/carts/{cart_id}/lines', json={"product_name": product}, headers=headers(operator))
        batch_id = response.json["cart"]["lines"][0]["batch_id"]
        if quantity != 1:
            client.patch(
                f'/api/carts/{cart_id}/lines/{batch_id}', json={"quantity": quantity}, headers=headers(operator)
            )
        if discount is not None:
            client.put(f'/api/carts/{cart_id}/discount', json={"percent": discount}, headers=headers(operator))
        response = client.post(
            f'/api/carts/{cart_id}/checkout',
            json={"payment_method": "cash", "customer_name": "Mona"},
            headers=headers(operator),
        )
        assert response.status_code == 201
        return response.json["sale"]

    def test_full_flow(self, client, headers, owner, cashier, stocked):
        response = client.post('/api/shifts/open', json={"opening_cash": "100.00"}, headers=headers(owner))
        assert response.status_code == 201

        sale = self._sell(client, headers, owner, discount=10)
        assert sale["subtotal"] == "100.00"
        assert sale["total"] == "90.00"
        assert sale["customer_name"] == "Mona"
        key = sale["lines"][0]["line_key"]

        response = client.get(f'/api/sales/{sale["id"]}/returnable', headers=headers(cashier))
        assert response.json["lines"][0]["available_qty"] == 5
        assert response.json["full_refund"] == "90.00"

        response = client.post(
            f'/api/sales/{sale["id"]}/returns',
            json={"items": [{"line_key": key, "quantity": 2, "condition": "sellable"}], "reason": "wrong_item"},
            headers=headers(cashier),
        )
        assert response.status_code == 201
        assert response.json["return"]["total_refund"] == "36.00"
        assert response.json["sale"]["net_total"] == "54.00"
        assert response.json["sale"]["status"] == "partially_returned"

        response = client.post(
            f'/api/sales/{sale["id"]}/returns', json={"full": True}, headers=headers(cashier)
        )
        assert response.status_code == 201
        assert response.json["return"]["kind"] == "full"
        assert response.json["return"]["total_refund"] == "54.00"
        assert response.json["sale"]["status"] == "returned"

        response = client.get('/api/shifts/current', headers=headers(owner))
        assert response.json["shift"]["returns_total"] == "90.00"
        assert response.json["shift"]["available_balance"] == "0.00"

        response = client.get('/api/returns', headers=headers(owner))
        assert len(response.json["returns"]) == 2

    def test_over_return_is_rejected(self, client, headers, owner, stocked):
        client.post('/api/shifts/open', json={}, headers=headers(owner))
        sale = self._sell(client, headers, owner, quantity=3)
        key = sale["lines"][0]["line_key"]

        response = client.post(
            f'/api/sales/{sale["id"]}/returns',
            json={"items": [{"line_key": key, "quantity": 4}]},
            headers=headers(owner),
        )

        assert response.status_code == 400
        assert "available: 3" in response.json["error"]

    def test_refund_denial_carries_rule(self, client, headers, owner, pharmacist, stocked):
        response = client.post('/api/shifts/open', json={}, headers=headers(owner))
        shift_id = response.json["shift"]["id"]
        sale = self._sell(client, headers, owner, quantity=1)
        response = client.post(f'/api/shifts/{shift_id}/close', json={"closing_cash": "20.00"}, headers=headers(owner))
        assert response.json["shift"]["status"] == "closed"

        response = client.post(
            f'/api/sales/{sale["id"]}/returns',
            json={"items": [{"line_key": sale["lines"][0]["line_key"], "quantity": 1}]},
            headers=headers(pharmacist),
        )

        assert response.status_code == 403
        assert response.json["rule"] == "no_open_shift"
        assert response.json["reason"] == "No open shift"

    def test_return_preview_writes_nothing(self, client, headers, owner, stocked):
        sale = self._sell(client, headers, owner, quantity=2)
        key = sale["lines"][0]["line_key"]

        response = client.post(
            f'/api/sales/{sale["id"]}/returns/preview',
            json={"items": [{"line_key": key, "quantity": 1}]},
            headers=headers(owner),
        )
        assert response.status_code == 200
        assert response.json["draft"]["total_refund"] == "20.00"

        response = client.get(f'/api/sales/{sale["id"]}', headers=headers(owner))
        assert response.json["sale"]["net_total"] == "40.00"
        assert response.json["sale"]["return_ids"] == []


class TestShiftRoutes:
    def test_open_deposit_close(self, client, headers, owner):
        response = client.post('/api/shifts/open', json={"opening_cash": "50"}, headers=headers(owner))
        shift_id = response.json["shift"]["id"]

        response = client.post(f'/api/shifts/{shift_id}/deposits', json={"amount": "25.00"}, headers=headers(owner))
        assert response.json["shift"]["cash_deposits"] == "25.00"

        response = client.post(f'/api/shifts/{shift_id}/close', json={"closing_cash": "70.00"}, headers=headers(owner))
        assert response.status_code == 200
        assert response.json["shift"]["expected_cash"] == "75.00"
        assert response.json["shift"]["variance"] == "-5.00"

    def test_second_open_on_terminal_is_rejected(self, client, headers, owner):
        client.post('/api/shifts/open', json={}, headers=headers(owner))

        response = client.post('/api/shifts/open', json={}, headers=headers(owner))

        assert response.status_code == 400

    def test_pharmacist_cannot_open_shift(self, client, headers, pharmacist):
        response = client.post('/api/shifts/open', json={}, headers=headers(pharmacist))
        assert response.status_code == 403

    def test_invalid_deposit_amount(self, client, headers, owner):
        response = client.post('/api/shifts/open', json={}, headers=headers(owner))
        shift_id = response.json["shift"]["id"]

        response = client.post(f'/api/shifts/{shift_id}/deposits', json={"amount": "abc"}, headers=headers(owner))

        assert response.status_code == 400
