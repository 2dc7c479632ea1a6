"""Component tests for sign-up, roles and account administration."""

import pytest
from fastapi.testclient import TestClient

from canteen_menu_service.config import CatalogBackend, IdentityBackend, Settings
from src.main import create_application

ADMIN_EMAIL = "root@canteen.edu"
ADMIN_PASSWORD = "RootPass1"


def _bearer(response_json: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {response_json['access_token']}"}


@pytest.mark.component
class TestAccountWorkflow:
    """Test suite for account flows against an in-memory deployment."""

    @pytest.fixture
    def client(self) -> TestClient:
        """Create a client for an application bootstrapped with one admin."""
        app = create_application(
            Settings(
                environment="test",
                catalog_backend=CatalogBackend.MEMORY,
                identity_backend=IdentityBackend.MEMORY,
                bootstrap_admin_email=ADMIN_EMAIL,
                bootstrap_admin_password=ADMIN_PASSWORD,
                recent_auth_window_seconds=0,
            )
        )
        return TestClient(app)

    @pytest.fixture
    def admin_headers(self, client: TestClient) -> dict[str, str]:
        """Sign in as the bootstrap admin."""
        response = client.post("/auth/sign-in", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        return _bearer(response.json())

    def test_sign_up_password_rules(self, client: TestClient) -> None:
        """Test that a password without an uppercase letter is rejected and a strong one accepted."""
        weak = client.post(
            "/auth/sign-up",
            json={"email": "cook@canteen.edu", "password": "password1", "confirmPassword": "password1"},
        )
        strong = client.post(
            "/auth/sign-up",
            json={"email": "cook@canteen.edu", "password": "Password1", "confirmPassword": "Password1"},
        )

        assert weak.status_code == 400
        assert weak.json()["message"] == "Password must contain at least one uppercase letter"
        assert strong.status_code == 201

    def test_sign_up_mismatch_rejected_even_if_both_valid(self, client: TestClient) -> None:
        """Test that mismatched confirmation always fails."""
        response = client.post(
            "/auth/sign-up",
            json={"email": "cook@canteen.edu", "password": "Password1", "confirmPassword": "Password2"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Passwords don't match"

    def test_self_registered_manager_edits_menu_but_not_accounts(self, client: TestClient) -> None:
        """Test the content manager's permissions end to end."""
        signed_up = client.post(
            "/auth/sign-up",
            json={"email": "cook@canteen.edu", "password": "Password1", "confirmPassword": "Password1"},
        ).json()
        headers = _bearer(signed_up["session"])

        created = client.post(
            "/menu",
            json={"name": "Kaya Toast", "price": 2, "category": "Snacks", "canteenLevel": "Level 3"},
            headers=headers,
        )
        accounts = client.get("/admin/accounts", headers=headers)

        assert created.status_code == 201
        assert accounts.status_code == 403

    def test_role_change_takes_effect_on_next_request(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        """Test that a signed-in manager gains admin access without signing in again."""
        created = client.post(
            "/admin/accounts",
            json={"email": "deputy@canteen.edu", "password": "DeputyPass1"},
            headers=admin_headers,
        ).json()
        deputy = client.post("/auth/sign-in", json={"email": "deputy@canteen.edu", "password": "DeputyPass1"})
        deputy_headers = _bearer(deputy.json())
        assert client.get("/admin/accounts", headers=deputy_headers).status_code == 403

        promoted = client.put(
            f"/admin/accounts/{created['uid']}/role", json={"role": "admin"}, headers=admin_headers
        )
        assert promoted.status_code == 200
        assert client.get("/admin/accounts", headers=deputy_headers).status_code == 200

        refused = client.put(
            f"/admin/accounts/{created['uid']}/role", json={"role": "content_manager"}, headers=admin_headers
        )
        assert refused.status_code == 403
        assert refused.json()["message"] == "Cannot modify another admin's role"

    def test_invited_account_is_pending(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        """Test that an invitation without a password creates a pending account that cannot sign in."""
        created = client.post(
            "/admin/accounts", json={"email": "invitee@canteen.edu"}, headers=admin_headers
        )

        assert created.status_code == 201
        assert created.json()["pending"] is True
        sign_in = client.post("/auth/sign-in", json={"email": "invitee@canteen.edu", "password": "Anything1"})
        assert sign_in.status_code == 401

    def test_manager_deleted_by_admin(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        """Test that deleting a content manager removes the record and the sign in."""
        created = client.post(
            "/admin/accounts",
            json={"email": "cook@canteen.edu", "password": "CookPass1"},
            headers=admin_headers,
        ).json()
        uid = created["uid"]

        listed = client.get("/admin/accounts", headers=admin_headers).json()
        assert {a["email"] for a in listed} == {ADMIN_EMAIL, "cook@canteen.edu"}

        deleted = client.delete(f"/admin/accounts/{uid}", headers=admin_headers)
        assert deleted.status_code == 200

        sign_in = client.post("/auth/sign-in", json={"email": "cook@canteen.edu", "password": "CookPass1"})
        assert sign_in.status_code == 401
