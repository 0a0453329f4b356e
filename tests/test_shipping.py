"""
Tests for shipping address CRUD and the single-default rule.
"""

import pytest

from storefront import shipping
from storefront.models import ShippingAddress

from conftest import address_body

PATH = "/shipping/shipping-addresses"


def _create(client, headers, **overrides):
    response = client.post(PATH, json=address_body(**overrides), headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()["address"]


def _defaults(db, username="alice"):
    db.expire_all()
    return [
        a.id for a in db.query(ShippingAddress)
        .filter(ShippingAddress.username == username, ShippingAddress.is_default.is_(True))
    ]


class TestDefaultAddress:
    def test_new_default_replaces_old(self, client, alice, db):
        first = _create(client, alice, isDefault=True)
        assert first["is_default"] is True

        second = _create(client, alice, addressLine1="456 Rizal Avenue", isDefault=True)
        assert _defaults(db) == [second["id"]]

        addresses = client.get(PATH, headers=alice).json()["addresses"]
        assert [a["id"] for a in addresses] == [second["id"], first["id"]]
        assert addresses[1]["is_default"] is False

    def test_update_can_move_default(self, client, alice, db):
        first = _create(client, alice, isDefault=True)
        second = _create(client, alice, addressLine1="456 Rizal Avenue")

        response = client.put(PATH, json=address_body(id=second["id"], addressLine1="456 Rizal Avenue", isDefault=True), headers=alice)
        assert response.status_code == 200
        assert response.json()["message"] == "Shipping address updated successfully"
        assert _defaults(db) == [second["id"]]
        assert first["id"] not in _defaults(db)

    def test_string_true_counts_as_default(self, client, alice):
        assert _create(client, alice, isDefault="true")["is_default"] is True

    def test_other_users_defaults_untouched(self, client, alice, bob, db):
        bobs = _create(client, bob, isDefault=True)
        _create(client, alice, isDefault=True)
        assert _defaults(db, "bob") == [bobs["id"]]

    def test_lost_race_for_default_is_a_conflict(self, client, alice, db, monkeypatch):
        first = _create(client, alice, isDefault=True)
        # Another request sets its default between our clear and our insert
        monkeypatch.setattr(shipping, "_clear_other_defaults", lambda *args, **kwargs: None)

        response = client.post(PATH, json=address_body(addressLine1="456 Rizal Avenue", isDefault=True), headers=alice)
        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "message": "Another default address was set concurrently. Please try again.",
        }
        assert _defaults(db) == [first["id"]]
        assert db.query(ShippingAddress).count() == 1


class TestAddressCrud:
    def test_defaults_country(self, client, alice):
        assert _create(client, alice)["country"] == "Philippines"

    def test_list_is_scoped_to_caller(self, client, alice, bob):
        _create(client, alice)
        assert client.get(PATH, headers=bob).json()["addresses"] == []

    def test_cannot_list_someone_else(self, client, alice, bob):
        response = client.get(f"{PATH}?username=alice", headers=bob)
        assert response.status_code == 403

    def test_update_unknown(self, client, alice):
        response = client.put(PATH, json=address_body(id="missing"), headers=alice)
        assert response.status_code == 404
        assert response.json()["message"] == "Address not found"

    def test_update_needs_id(self, client, alice):
        response = client.put(PATH, json=address_body(), headers=alice)
        assert response.status_code == 400

    def test_delete(self, client, alice, db):
        address = _create(client, alice)
        response = client.delete(f"{PATH}?id={address['id']}", headers=alice)
        assert response.status_code == 200
        assert response.json()["message"] == "Shipping address deleted successfully"
        assert db.query(ShippingAddress).count() == 0

    def test_delete_unknown(self, client, alice):
        response = client.delete(f"{PATH}?id=missing", headers=alice)
        assert response.status_code == 404

    def test_delete_requires_id(self, client, alice):
        response = client.delete(PATH, headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "Address ID is required"

    def test_cannot_delete_someone_elses(self, client, alice, bob, db):
        address = _create(client, alice)
        response = client.delete(f"{PATH}?id={address['id']}", headers=bob)
        assert response.status_code == 404
        assert db.query(ShippingAddress).count() == 1

    def test_patch_not_allowed(self, client, alice):
        response = client.patch(PATH, json={}, headers=alice)
        assert response.status_code == 405
        assert response.json() == {"success": False, "message": "Method not allowed"}


@pytest.mark.parametrize("overrides, message", [
    ({"fullName": ""}, "Missing required fields"),
    ({"fullName": "A"}, "Full name must be between 2 and 100 characters"),
    ({"phoneNumber": "12-34"}, "Invalid phone number format"),
    ({"addressLine1": "1 A"}, "Address line 1 must be between 5 and 200 characters"),
    ({"city": "M"}, "City must be between 2 and 100 characters"),
    ({"province": "M"}, "Province must be between 2 and 100 characters"),
    ({"postalCode": "1#0"}, "Invalid postal code format"),
])
def test_address_validation(client, alice, overrides, message):
    response = client.post(PATH, json=address_body(**overrides), headers=alice)
    assert response.status_code == 400
    assert response.json()["message"] == message
