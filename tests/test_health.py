from fastapi.testclient import TestClient

from boilerplate.core.config import PROJECT_NAME


def test_health_endpoint():
    """Test health endpoint"""
    from boilerplate.main import app

    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "app_name": PROJECT_NAME}
