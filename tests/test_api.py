"""
HTTP surface: role guards, error status mapping and the main front-desk flows
"""
from modules.members.models import Member
from modules.memberships.models import SubscriptionStatus


def _member_payload(**overrides):
    payload = {"first_name": "Lina", "last_name": "Haddad", "email": "lina@example.com"}
    payload.update(overrides)
    return payload


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestGuards:
    def test_no_token(self, client):
        assert client.get("/api/members").status_code == 401

    def test_member_login_cannot_use_staff_endpoints(self, client, member_user, auth_headers):
        response = client.post("/api/members", json=_member_payload(), headers=auth_headers(member_user))
        assert response.status_code == 403

    def test_staff_cannot_use_portal_endpoints(self, client, staff_user, auth_headers):
        assert client.get("/api/members/me", headers=auth_headers(staff_user)).status_code == 403

    def test_platform_admin_has_no_club_scope(self, client, platform_admin, auth_headers):
        assert client.get("/api/members", headers=auth_headers(platform_admin)).status_code == 403

    def test_only_platform_admin_manages_clubs(self, client, club_admin, auth_headers):
        assert client.get("/api/platform/tenants", headers=auth_headers(club_admin)).status_code == 403

    def test_points_adjustment_is_admin_only(self, client, staff_user, club_admin, member, auth_headers):
        body = {"points": 50, "description": "Goodwill"}
        url = f"/api/loyalty/members/{member.id}/adjust"

        assert client.post(url, json=body, headers=auth_headers(staff_user)).status_code == 403
        response = client.post(url, json=body, headers=auth_headers(club_admin))
        assert response.status_code == 200
        assert response.json()["balance_after"] == 50


class TestErrorMapping:
    def test_validation_error(self, client, staff_user, auth_headers):
        response = client.post("/api/members", json=_member_payload(email="not-an-email"),
                               headers=auth_headers(staff_user))
        assert response.status_code == 422

    def test_not_found(self, client, staff_user, auth_headers):
        response = client.get("/api/members/does-not-exist", headers=auth_headers(staff_user))
        assert response.status_code == 404
        assert response.json()["detail"] == "Member not found"

    def test_duplicate(self, client, staff_user, member, auth_headers):
        response = client.post("/api/members", json=_member_payload(email=member.email),
                               headers=auth_headers(staff_user))
        assert response.status_code == 409

    def test_other_club_is_invisible(self, client, staff_user, other_tenant, make_member, auth_headers):
        outsider = make_member(tenant_id=other_tenant.id)
        response = client.get(f"/api/members/{outsider.id}", headers=auth_headers(staff_user))
        assert response.status_code == 404

    def test_bad_voucher_on_subscribe(self, client, staff_user, member, plan, auth_headers):
        response = client.post("/api/subscriptions", json={
            "member_id": member.id, "plan_id": plan.id, "voucher_code": "NOPE"
        }, headers=auth_headers(staff_user))

        assert response.status_code == 400
        assert response.json()["detail"].startswith("NOT_FOUND")


class TestMembers:
    def test_create_and_search(self, db, client, staff_user, auth_headers):
        headers = auth_headers(staff_user)
        created = client.post("/api/members", json=_member_payload(email="Lina@Example.com"), headers=headers)
        assert created.status_code == 201
        assert created.json()["email"] == "lina@example.com"
        assert created.json()["status"] == "ACTIVE"

        page = client.get("/api/members", params={"q": "lina"}, headers=headers).json()
        assert set(page) == {"items", "total", "page", "per_page", "total_pages", "has_next", "has_prev"}
        assert page["total"] == 1
        assert page["has_next"] is False

    def test_soft_delete(self, db, client, club_admin, member, auth_headers):
        response = client.delete(f"/api/members/{member.id}", headers=auth_headers(club_admin))
        assert response.status_code == 204

        db.expire_all()
        assert db.get(Member, member.id).deleted_at is not None
        assert client.get(f"/api/members/{member.id}", headers=auth_headers(club_admin)).status_code == 404

    def test_portal_profile(self, client, member_user, member, auth_headers):
        response = client.get("/api/members/me", headers=auth_headers(member_user))
        assert response.status_code == 200
        assert response.json()["id"] == member.id

    def test_member_qr_image(self, client, member_user, auth_headers):
        response = client.get("/api/members/me/qr.png", headers=auth_headers(member_user))
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")


class TestFrontDesk:
    def test_free_plan_then_check_in_and_out(self, client, staff_user, member, free_plan, location, auth_headers):
        headers = auth_headers(staff_user)

        checkout = client.post("/api/subscriptions", json={"member_id": member.id, "plan_id": free_plan.id},
                               headers=headers)
        assert checkout.status_code == 201
        assert checkout.json()["subscription"]["status"] == SubscriptionStatus.ACTIVE.value
        assert checkout.json()["invoice_id"] is None

        visit = {"member_id": member.id, "location_id": location.id}
        first = client.post("/api/attendance/check-in", json=visit, headers=headers)
        assert first.status_code == 201

        again = client.post("/api/attendance/check-in", json=visit, headers=headers)
        assert again.status_code == 409
        assert again.json()["detail"] == "Member is already checked in"

        out = client.post("/api/attendance/check-out", json={"member_id": member.id}, headers=headers)
        assert out.status_code == 200
        assert out.json()["check_out_time"] is not None

    def test_check_in_without_subscription(self, client, staff_user, member, location, auth_headers):
        response = client.post("/api/attendance/check-in", json={
            "member_id": member.id, "location_id": location.id
        }, headers=auth_headers(staff_user))

        assert response.status_code == 409
        assert response.json()["detail"] == "Member has no active subscription"

    def test_paid_plan_is_activated_by_payment(self, client, staff_user, member, plan, auth_headers):
        headers = auth_headers(staff_user)

        checkout = client.post("/api/subscriptions", json={"member_id": member.id, "plan_id": plan.id},
                               headers=headers).json()
        assert checkout["subscription"]["status"] == SubscriptionStatus.PENDING_PAYMENT.value
        assert checkout["invoice_number"].startswith("INV-")

        paid = client.post(f"/api/invoices/{checkout['invoice_id']}/payments", json={"amount": "345.00"},
                           headers=headers)
        assert paid.status_code == 200
        assert paid.json()["status"] == "PAID"

        subscription = client.get(f"/api/subscriptions/{checkout['subscription']['id']}", headers=headers)
        assert subscription.json()["status"] == SubscriptionStatus.ACTIVE.value

        pdf = client.get(f"/api/invoices/{checkout['invoice_id']}/pdf", headers=headers)
        assert pdf.headers["content-type"] == "application/pdf"
        assert pdf.content.startswith(b"%PDF")

    def test_overpayment_is_rejected(self, client, staff_user, member, plan, auth_headers):
        headers = auth_headers(staff_user)
        checkout = client.post("/api/subscriptions", json={"member_id": member.id, "plan_id": plan.id},
                               headers=headers).json()

        response = client.post(f"/api/invoices/{checkout['invoice_id']}/payments", json={"amount": "500.00"},
                               headers=headers)
        assert response.status_code == 400


class TestPlatform:
    def test_create_club_with_admin(self, client, platform_admin, auth_headers):
        response = client.post("/api/platform/tenants", json={
            "name": "Peak Performance",
            "slug": "peak-performance",
            "admin": {
                "email": "owner@peak.example.com",
                "password": "Owner1234",
                "first_name": "Noura",
                "last_name": "Saleh",
            },
        }, headers=auth_headers(platform_admin))

        assert response.status_code == 201
        assert response.json()["currency"] == "SAR"

        login = client.post("/api/auth/login", json={"email": "owner@peak.example.com", "password": "Owner1234"})
        assert login.status_code == 200
        assert login.json()["user"]["tenant_id"] == response.json()["id"]

    def test_duplicate_slug(self, client, platform_admin, tenant, auth_headers):
        response = client.post("/api/platform/tenants", json={
            "name": "Copy", "slug": tenant.slug,
            "admin": {"email": "x@copy.example.com", "password": "Owner1234", "first_name": "X", "last_name": "Y"},
        }, headers=auth_headers(platform_admin))

        assert response.status_code == 409
