"""
Tests for page-visit tracking.
"""

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.models import WebsiteVisit


def _track(client, headers=None, **body):
    return client.post("/utils/track-visit", json=body, headers=headers or {})


class TestTrackVisit:
    def test_anonymous_visit_is_stored(self, client, db):
        response = _track(
            client, pagePath="/products", visitorId="v-123",
            userAgent="Mozilla/5.0", ipAddress="203.0.113.7",
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Visit tracked successfully"}

        visit = db.query(WebsiteVisit).one()
        assert visit.page_path == "/products"
        assert visit.visitor_id == "v-123"
        assert visit.user_agent == "Mozilla/5.0"
        assert visit.ip_address == "203.0.113.7"

    def test_optional_fields_are_trimmed_and_truncated(self, client, db):
        assert _track(client, page_path="/", visitor_id="x" * 150, userAgent="   ").status_code == 200
        visit = db.query(WebsiteVisit).one()
        assert len(visit.visitor_id) == 100
        assert visit.user_agent is None
        assert visit.ip_address is None

    def test_page_path_required(self, client, db):
        response = _track(client, visitorId="v-123")
        assert response.status_code == 400
        assert response.json()["errors"] == ["pagePath is required"]
        assert db.query(WebsiteVisit).count() == 0

    def test_blank_page_path(self, client):
        response = _track(client, pagePath="   ")
        assert response.status_code == 400
        assert response.json()["errors"] == ["Invalid page path"]

    def test_admin_pages_are_skipped(self, client, db):
        response = _track(client, pagePath="/admin/dashboard")
        assert response.json()["message"] == "Admin pages are not tracked"
        assert db.query(WebsiteVisit).count() == 0

    def test_admin_visitor_is_skipped(self, client, admin, db):
        response = _track(client, headers=admin, pagePath="/products")
        assert response.status_code == 200
        assert response.json()["message"] == "Admin visits are not tracked"
        assert db.query(WebsiteVisit).count() == 0

    def test_signed_in_buyer_is_tracked(self, client, alice, db):
        assert _track(client, headers=alice, pagePath="/cart").json()["message"] == "Visit tracked successfully"
        assert db.query(WebsiteVisit).count() == 1

    def test_bad_token_counts_as_anonymous(self, client, db):
        response = _track(client, headers={"Authorization": "Bearer nonsense"}, pagePath="/")
        assert response.status_code == 200
        assert db.query(WebsiteVisit).count() == 1

    def test_storage_failure(self, client, db, monkeypatch):
        def broken_commit(session):
            raise OperationalError("INSERT INTO website_visits", {}, Exception("disk full"))

        monkeypatch.setattr(Session, "commit", broken_commit)
        response = _track(client, pagePath="/products")
        monkeypatch.undo()

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Visit tracking failed"}
        assert db.query(WebsiteVisit).count() == 0
