from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from bellebook.common import ServiceSettings
from bellebook.pricing_service.app.main import SERVICE_NAME, create_app


@pytest.mark.asyncio
async def test_health_endpoint_returns_ok(tmp_path) -> None:
    settings = ServiceSettings(
        enable_metrics=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'health.db'}",
    )
    app = create_app(settings)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert app.title == SERVICE_NAME


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
