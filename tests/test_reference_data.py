import json

import pytest
from httpx import AsyncClient

from app.api.v1.reference_data import service
from app.core.config import settings
from app.core.exceptions import ServiceError


@pytest.fixture()
def reference_dir(tmp_path, monkeypatch):
    """Point REFERENCE_DATA_DIR at a temporary directory with an empty cache."""
    monkeypatch.setattr(settings, "reference_data_dir", str(tmp_path))
    service.clear_cache()
    yield tmp_path
    service.clear_cache()


@pytest.fixture(autouse=True)
def fresh_cache():
    service.clear_cache()
    yield
    service.clear_cache()


def test_builtin_lists() -> None:
    clients = {c.id: c.name for c in service.list_clients()}
    assert clients[11] == "Aspen Pharmacare"
    assert clients[14] == "Barloworld"

    assert "HWSETA" in [s.id for s in service.list_seta_bodies()]
    assert [t.id for t in service.list_class_types()] == ["employed", "community", "safety", "skills"]
    assert "Written" in service.list_exam_types()
    assert "Venue Confirmed" in service.list_class_note_types()
    assert service.list_agents()
    assert service.list_supervisors()
    assert service.list_learners()


def test_sites_filter_by_client() -> None:
    sites = service.list_sites(11)

    assert {s.id for s in sites} == {"11_1", "11_2", "11_3"}
    assert all(s.client_id == 11 for s in sites)
    assert len(service.list_sites()) == 6
    assert service.list_sites(99) == []


def test_subjects_by_class_type() -> None:
    assert set(service.list_class_subjects()) == {"employed", "community", "safety", "skills"}
    assert service.list_class_subjects("safety")["safety"][0] == "First Aid Level 1"
    assert service.list_class_subjects("unknown") == {"unknown": []}


def test_public_holidays_by_year() -> None:
    holidays = service.list_public_holidays(2025)

    assert holidays[0].date == "2025-01-01"
    assert "2025-12-25" in [h.date for h in holidays]
    assert service.list_public_holidays(1999) == []


def test_json_file_overrides_builtin_list(reference_dir) -> None:
    (reference_dir / "clients.json").write_text(json.dumps([{"id": 1, "name": "Only Client"}]), encoding="utf-8")

    assert [c.name for c in service.list_clients()] == ["Only Client"]
    # Lists without a file keep their defaults
    assert len(service.list_agents()) == 10


def test_unreadable_override_is_an_error(reference_dir) -> None:
    (reference_dir / "agents.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ServiceError):
        service.list_agents()


@pytest.mark.asyncio
async def test_reference_endpoints(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/v1/reference/sites", params={"client_id": 14}, headers=admin_headers)
    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == ["14_1", "14_2", "14_3"]

    response = await client.get("/api/v1/reference/public-holidays", params={"year": 2026}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()[0] == {"date": "2026-01-01", "name": "New Year's Day"}

    for path in ("clients", "agents", "supervisors", "learners", "setas", "class-types", "exam-types", "class-note-types"):
        response = await client.get(f"/api/v1/reference/{path}", headers=admin_headers)
        assert response.status_code == 200, path
        assert response.json(), path


@pytest.mark.asyncio
async def test_reference_endpoints_require_authentication(client: AsyncClient) -> None:
    response = await client.get("/api/v1/reference/clients")
    assert response.status_code == 401
