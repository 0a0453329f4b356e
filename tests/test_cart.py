"""
Tests for cart endpoints: merge on add, quantity changes and ownership.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from storefront import cart
from storefront.models import CartItem

from conftest import PRODUCT_IMAGE, TestingSessionLocal, cart_item_body


def _cart(client, headers, username="alice"):
    response = client.get(f"/cart/get-cart?username={username}", headers=headers)
    assert response.status_code == 200
    return response.json()["cart"]


class TestAddToCart:
    def test_same_product_merges_into_one_row(self, client, alice, db):
        response = client.post("/cart/add-to-cart", json=cart_item_body("alice", quantity=2), headers=alice)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Product added to cart successfully!"
        assert body["cartItem"]["quantity"] == 2

        response = client.post("/cart/add-to-cart", json=cart_item_body("alice", quantity=1), headers=alice)
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Product quantity updated in cart!",
            "updated": True,
            "quantity": 3,
        }
        assert db.query(CartItem).filter(CartItem.username == "alice").count() == 1

    def test_quantity_defaults_to_one(self, client, alice):
        body = cart_item_body("alice")
        del body["quantity"]
        response = client.post("/cart/add-to-cart", json=body, headers=alice)
        assert response.json()["cartItem"]["quantity"] == 1

    def test_snake_case_fields_are_accepted(self, client, alice):
        body = {
            "username": "alice",
            "product_id": "P9",
            "product_name": "Snake",
            "description": "Snake case body",
            "price": 5,
            "id_url": "https://cdn.example.com/p9.jpg",
        }
        response = client.post("/cart/add-to-cart", json=body, headers=alice)
        assert response.status_code == 200
        assert response.json()["cartItem"]["product_id"] == "P9"

    def test_other_users_cart_is_forbidden(self, client, alice, bob, db):
        response = client.post("/cart/add-to-cart", json=cart_item_body("bob"), headers=alice)
        assert response.status_code == 403
        assert response.json()["message"] == "Forbidden: You can only add items to your own cart"
        assert db.query(CartItem).count() == 0

    def test_missing_fields(self, client, alice):
        body = cart_item_body("alice")
        del body["description"]
        response = client.post("/cart/add-to-cart", json=body, headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "All fields are required"

    def test_invalid_price(self, client, alice):
        response = client.post("/cart/add-to-cart", json=cart_item_body("alice", price="-3"), headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid price format"

    def test_invalid_quantity(self, client, alice):
        response = client.post("/cart/add-to-cart", json=cart_item_body("alice", quantity=0), headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "Quantity must be a positive integer"

    def test_image_url_is_checked(self, client, alice):
        body = cart_item_body("alice", idUrl="https://cdn.example.com/readme.txt")
        response = client.post("/cart/add-to-cart", json=body, headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid image URL format"

    def test_requires_authentication(self, client):
        response = client.post("/cart/add-to-cart", json=cart_item_body("alice"))
        assert response.status_code == 401


class TestUpdateQuantity:
    def _add(self, client, headers, quantity=1):
        client.post("/cart/add-to-cart", json=cart_item_body("alice", quantity=quantity), headers=headers)
        return _cart(client, headers)[0]["id"]

    def test_increase(self, client, alice):
        item_id = self._add(client, alice)
        response = client.patch(f"/cart/update-cart-quantity?id={item_id}&action=increase&username=alice", headers=alice)
        assert response.status_code == 200
        assert response.json()["cartItem"]["quantity"] == 2

    def test_decrease_to_zero_removes_row(self, client, alice, db):
        item_id = self._add(client, alice, quantity=2)
        response = client.patch(f"/cart/update-cart-quantity?id={item_id}&action=decrease&username=alice", headers=alice)
        assert response.json()["cartItem"]["quantity"] == 1

        response = client.patch(f"/cart/update-cart-quantity?id={item_id}&action=decrease&username=alice", headers=alice)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Item removed from cart", "removed": True}
        assert db.query(CartItem).count() == 0

    def test_invalid_action(self, client, alice):
        item_id = self._add(client, alice)
        response = client.patch(f"/cart/update-cart-quantity?id={item_id}&action=double&username=alice", headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid action. Must be 'increase' or 'decrease'"

    def test_missing_parameters(self, client, alice):
        response = client.patch("/cart/update-cart-quantity?action=increase", headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "Missing required parameters"

    def test_unknown_item(self, client, alice):
        response = client.patch("/cart/update-cart-quantity?id=nope&action=increase&username=alice", headers=alice)
        assert response.status_code == 404
        assert response.json()["message"] == "Cart item not found"

    def test_other_users_item_is_hidden(self, client, alice, bob, db):
        item_id = self._add(client, alice)
        response = client.patch(f"/cart/update-cart-quantity?id={item_id}&action=increase&username=bob", headers=bob)
        assert response.status_code == 404
        assert db.get(CartItem, item_id).quantity == 1


class TestRemoveAndRead:
    def test_remove(self, client, alice):
        client.post("/cart/add-to-cart", json=cart_item_body("alice"), headers=alice)
        item_id = _cart(client, alice)[0]["id"]
        response = client.delete(f"/cart/remove-from-cart?id={item_id}&username=alice", headers=alice)
        assert response.status_code == 200
        assert response.json()["message"] == "Item removed successfully"
        assert _cart(client, alice) == []

    def test_remove_unknown(self, client, alice):
        response = client.delete("/cart/remove-from-cart?id=nope&username=alice", headers=alice)
        assert response.status_code == 404
        assert response.json()["message"] == "Item not found"

    def test_cannot_remove_someone_elses_item(self, client, alice, bob, db):
        client.post("/cart/add-to-cart", json=cart_item_body("alice"), headers=alice)
        item_id = _cart(client, alice)[0]["id"]
        response = client.delete(f"/cart/remove-from-cart?id={item_id}&username=bob", headers=bob)
        assert response.status_code == 403
        assert db.query(CartItem).count() == 1

    def test_get_cart_lists_unknown_seller(self, client, alice):
        client.post("/cart/add-to-cart", json=cart_item_body("alice", product_id="P1"), headers=alice)
        client.post("/cart/add-to-cart", json=cart_item_body("alice", product_id="P2"), headers=alice)
        response = client.get("/cart/get-cart?username=alice", headers=alice)
        body = response.json()
        assert body["count"] == 2
        assert {item["productName"] for item in body["cart"]} == {"Product P1", "Product P2"}
        assert all(item["seller_username"] == "Unknown" for item in body["cart"])

    def test_get_cart_by_email(self, client, alice):
        client.post("/cart/add-to-cart", json=cart_item_body("alice"), headers=alice)
        assert len(_cart(client, alice, username="alice@x.com")) == 1

    def test_get_cart_requires_username(self, client, alice):
        response = client.get("/cart/get-cart", headers=alice)
        assert response.status_code == 400
        assert response.json()["errors"] == ["Username is required"]

    def test_cannot_read_other_cart(self, client, alice, bob):
        response = client.get("/cart/get-cart?username=alice", headers=bob)
        assert response.status_code == 403

    def test_admin_reads_any_cart(self, client, alice, admin):
        client.post("/cart/add-to-cart", json=cart_item_body("alice"), headers=alice)
        assert len(_cart(client, admin)) == 1

    def test_cart_count(self, client, alice):
        client.post("/cart/add-to-cart", json=cart_item_body("alice", product_id="P1", quantity=4), headers=alice)
        client.post("/cart/add-to-cart", json=cart_item_body("alice", product_id="P2"), headers=alice)
        assert client.get("/cart/get-cart-count?username=alice", headers=alice).json()["count"] == 2
        assert client.get("/cart/get-cart-count", headers=alice).json() == {"success": True, "count": 0}


class TestConcurrentAdds:
    def test_parallel_adds_merge_into_one_row(self, db):
        workers = 8
        start = threading.Barrier(workers)

        def add_two(_):
            session = TestingSessionLocal()
            try:
                start.wait()
                result = cart.add_item(
                    session, "alice", "P1", "Product P1", "A product used in tests", "10.00", PRODUCT_IMAGE, quantity=2
                )
                return result.merged
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            merged = list(pool.map(add_two, range(workers)))

        rows = db.query(CartItem).filter(CartItem.username == "alice", CartItem.product_id == "P1").all()
        assert len(rows) == 1
        assert rows[0].quantity == 2 * workers
        assert merged.count(False) == 1

    def test_dialect_without_upsert_uses_row_lock_path(self, client, alice, db, monkeypatch):
        monkeypatch.setattr(cart, "_UPSERT_INSERTS", {})

        first = client.post("/cart/add-to-cart", json=cart_item_body("alice", quantity=2), headers=alice)
        assert first.json()["message"] == "Product added to cart successfully!"
        assert first.json()["cartItem"]["quantity"] == 2

        second = client.post("/cart/add-to-cart", json=cart_item_body("alice", quantity=3), headers=alice)
        assert second.json() == {
            "success": True,
            "message": "Product quantity updated in cart!",
            "updated": True,
            "quantity": 5,
        }
        assert db.query(CartItem).filter(CartItem.username == "alice").count() == 1
