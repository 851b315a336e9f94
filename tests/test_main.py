from app.core.config import settings


def test_root_reports_service_status(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"service": settings.app_name, "environment": settings.environment, "status": "ok"}
