"""
附加服务目录API测试
"""

import pytest

ADDONS_URL = "/api/catering/addons"


@pytest.fixture
def create_addon(client, admin_headers):
    def _create(**fields):
        body = {"name": "Setup Service", "priceCents": 15000, "category": "service"}
        body.update(fields)
        response = client.post(ADDONS_URL, headers=admin_headers, json=body)
        assert response.status_code == 200
        return response.json()["data"]
    return _create


class TestAddonCatalog:
    """附加服务目录测试"""

    def test_create_and_get(self, client, create_addon):
        created = create_addon(description="Professional setup and breakdown")

        assert created["id"]
        assert created["isActive"] is True
        response = client.get(f"{ADDONS_URL}/{created['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["description"] == "Professional setup and breakdown"

    def test_create_requires_admin_key(self, client):
        response = client.post(ADDONS_URL, json={"name": "Setup Service", "priceCents": 15000})
        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"

    def test_negative_price_rejected(self, client, admin_headers):
        response = client.post(ADDONS_URL, headers=admin_headers,
                               json={"name": "Setup Service", "priceCents": -1})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_list_only_active_by_default(self, client, create_addon):
        active = create_addon(name="Chafing Dishes", category="equipment")
        create_addon(name="Tablecloths & Linens", category="equipment", isActive=False)

        items = client.get(ADDONS_URL).json()["data"]
        assert [item["id"] for item in items] == [active["id"]]

        inactive = client.get(ADDONS_URL, params={"active": "false"}).json()["data"]
        assert [item["name"] for item in inactive] == ["Tablecloths & Linens"]

    def test_category_filter_is_case_insensitive(self, client, create_addon):
        create_addon(name="Setup Service", category="service")
        create_addon(name="Chafing Dishes", category="equipment")

        items = client.get(ADDONS_URL, params={"category": "SERVICE"}).json()["data"]
        assert [item["name"] for item in items] == ["Setup Service"]

    def test_partial_update(self, client, admin_headers, create_addon):
        created = create_addon()
        response = client.put(f"{ADDONS_URL}/{created['id']}", headers=admin_headers,
                              json={"priceCents": 17500})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["priceCents"] == 17500
        assert data["name"] == "Setup Service"
        assert data["category"] == "service"

    def test_empty_update_rejected(self, client, admin_headers, create_addon):
        created = create_addon()
        response = client.put(f"{ADDONS_URL}/{created['id']}", headers=admin_headers, json={})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_null_name_rejected(self, client, admin_headers, create_addon):
        created = create_addon()
        response = client.put(f"{ADDONS_URL}/{created['id']}", headers=admin_headers,
                              json={"name": None})
        assert response.status_code == 400
        assert response.json()["details"]["fields"] == ["name"]

    def test_update_missing_addon(self, client, admin_headers):
        response = client.put(f"{ADDONS_URL}/addon_missing", headers=admin_headers,
                              json={"priceCents": 100})
        assert response.status_code == 404
        assert response.json()["error_code"] == "ADDON_NOT_FOUND"

    def test_delete(self, client, admin_headers, create_addon):
        created = create_addon()
        response = client.delete(f"{ADDONS_URL}/{created['id']}", headers=admin_headers)
        assert response.status_code == 200

        assert client.get(f"{ADDONS_URL}/{created['id']}").status_code == 404
        again = client.delete(f"{ADDONS_URL}/{created['id']}", headers=admin_headers)
        assert again.status_code == 404


class TestDefaultAddons:
    """默认附加服务写入测试"""

    def test_seed_defaults_once(self, app_instance):
        service = app_instance.state.addon_service
        first = service.seed_defaults()
        assert first > 0
        assert service.seed_defaults() == 0
        assert len(service.list_addons(active=None)) == first
