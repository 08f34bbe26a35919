"""
Test health check endpoints
"""
import pytest


@pytest.mark.asyncio
@pytest.mark.unit
async def test_root_endpoint(client):
    """Test root endpoint"""
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_health_endpoint(client):
    """Test health check endpoint"""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_api_health_endpoint(client):
    """Detailed health reports service name and version"""
    from config import settings

    response = await client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == settings.APP_NAME
    assert data["version"] == settings.APP_VERSION
    assert data["reminder_scheduler"] == "stopped"
