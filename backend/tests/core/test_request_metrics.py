"""Tests for request metric labelling."""

import uuid

from fastapi.testclient import TestClient

from app.core.metrics import REGISTRY
from app.core.middleware import UNMATCHED_ENDPOINT
from app.main import create_app


def requests_total(endpoint: str, status_code: str, method: str = "GET") -> float:
    value = REGISTRY.get_sample_value(
        "http_requests_total",
        {"method": method, "endpoint": endpoint, "status_code": status_code},
    )
    return value or 0.0


def endpoints_seen() -> set[str]:
    return {
        sample.labels["endpoint"]
        for metric in REGISTRY.collect()
        if metric.name == "http_requests"
        for sample in metric.samples
        if "endpoint" in sample.labels
    }


class TestEndpointLabels:
    def test_unknown_paths_share_one_label(self, test_settings) -> None:
        client = TestClient(create_app(test_settings))
        before = requests_total(UNMATCHED_ENDPOINT, "404")

        for _ in range(3):
            assert client.get(f"/no-such-page/{uuid.uuid4().hex}").status_code == 404

        assert requests_total(UNMATCHED_ENDPOINT, "404") == before + 3
        assert not any("no-such-page" in endpoint for endpoint in endpoints_seen())

    def test_matched_routes_use_the_template(self, test_settings) -> None:
        client = TestClient(create_app(test_settings))
        template = "/api/videos/stream/{video_id}/{quality}"
        before = requests_total(template, "401")

        response = client.get(f"/api/videos/stream/{uuid.uuid4()}/720p")

        assert response.status_code == 401
        assert requests_total(template, "401") == before + 1
