from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from quickvibe.core.config import settings

API = settings.API_V1_STR


def test_health_check(client):
    r = client.get(f"{API}/utils/health-check/")
    assert r.status_code == 200
    assert r.json() is True


def test_health_reports_components(client):
    r = client.get(f"{API}/utils/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"] == {"status": "healthy"}
    assert body["checks"]["rate_limit_storage"] == {"status": "not_configured"}
    assert body["checks"]["llm"] == {"status": "not_configured"}


def test_health_degraded_when_database_down(client):
    with patch("quickvibe.api.routes.utils.ping", side_effect=OperationalError("SELECT 1", {}, Exception("down"))):
        r = client.get(f"{API}/utils/health")
    assert r.status_code == 503
    assert r.json()["status"] == "degraded"
