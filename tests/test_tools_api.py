from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.collaborators.external_apis import FileApiCatalogue
from app.collaborators.images import ImageGenerationError
from app.collaborators.search import SearchError
from app.core.augmentation import Augmenter
from app.core.pipeline import ChatPipeline
from app.main import create_app

from fakes import FakeImages, FakeSearch


def _client(registry, dispatcher, **collaborators) -> TestClient:
    pipeline = ChatPipeline(Augmenter(registry, **collaborators), dispatcher)
    return TestClient(create_app(pipeline))


def test_status_reports_operational(client: TestClient):
    response = client.get("/api/v1/status")

    assert response.status_code == 200
    body = response.json()
    assert body["api_version"] == "v1"
    assert body["status"] == "operational"
    assert body["timestamp"]


def test_apis_lists_enabled_catalogue_entries(registry, dispatcher):
    catalogue = FileApiCatalogue.from_entries(
        [
            {"name": "Weather", "description": "Forecasts", "baseUrl": "https://weather.test"},
            {"name": "Hidden", "enabled": False},
        ]
    )
    client = _client(registry, dispatcher, apis=catalogue)

    response = client.get("/api/v1/apis")

    assert response.status_code == 200
    assert response.json() == [
        {"name": "Weather", "description": "Forecasts", "baseUrl": "https://weather.test"}
    ]


def test_apis_without_catalogue_is_empty(client: TestClient):
    assert client.get("/api/v1/apis").json() == []


def test_search_tool_returns_results(registry, dispatcher):
    search = FakeSearch()
    client = _client(registry, dispatcher, search=search)

    response = client.post("/api/v1/tools/search", json={"query": "python release"})

    assert response.status_code == 200
    body = response.json()
    assert body["query"] == "python release"
    assert body["results"] == [
        {"title": "Result", "link": "https://example.com", "snippet": "A snippet"}
    ]
    assert search.queries == ["python release"]


def test_search_tool_requires_query(client: TestClient):
    response = client.post("/api/v1/tools/search", json={})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_request"


def test_search_tool_unconfigured_is_503(client: TestClient):
    response = client.post("/api/v1/tools/search", json={"query": "anything"})

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "search_unavailable"


def test_search_tool_failure_is_502(registry, dispatcher):
    client = _client(registry, dispatcher, search=FakeSearch(error=SearchError("quota exceeded")))

    response = client.post("/api/v1/tools/search", json={"query": "anything"})

    assert response.status_code == 502
    error = response.json()["error"]
    assert error["code"] == "search_failed"
    assert error["message"] == "quota exceeded"


def test_generate_image_returns_url(registry, dispatcher):
    images = FakeImages()
    client = _client(registry, dispatcher, images=images)

    response = client.post("/api/v1/generate-image", json={"prompt": "a red fox"})

    assert response.status_code == 200
    assert response.json() == {"imageUrl": "data:image/png;base64,QUJD"}
    assert images.prompts == ["a red fox"]


@pytest.mark.parametrize(
    ("images", "status_code", "code"),
    [
        (None, 503, "image_generation_unavailable"),
        (FakeImages(error=ImageGenerationError("no provider")), 502, "image_generation_failed"),
    ],
)
def test_generate_image_errors(registry, dispatcher, images, status_code, code):
    client = _client(registry, dispatcher, images=images)

    response = client.post("/api/v1/generate-image", json={"prompt": "a red fox"})

    assert response.status_code == status_code
    assert response.json()["error"]["code"] == code


def test_generate_image_requires_prompt(client: TestClient):
    response = client.post("/api/v1/generate-image", json={"prompt": ""})

    assert response.status_code == 400
