"""Tests for the HTTP job service."""

import time

import pytest
from fastapi.testclient import TestClient

from weir import __version__
from weir.core.specifications import EngineSettings, RetrySettings, ServiceSettings
from weir.service import create_app


@pytest.fixture
def client():
    settings = ServiceSettings(
        engine=EngineSettings(
            workers=2,
            retry=RetrySettings(max_attempts=1, initial_delay=0, max_delay=0),
        )
    )
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def job_payload(tmp_path):
    rows = "".join(f"{i},{i}\n" for i in range(25))
    (tmp_path / "in.csv").write_text("id,v\n" + rows)
    stage = {"type": "filter", "params": {"column": "v", "op": "lt", "value": 10}}
    return {
        "name": "copy",
        "sources": [{"id": "in", "path": str(tmp_path / "in.csv"), "batch_size": 5}],
        "stages": [stage],
        "sinks": [{"id": "out", "path": str(tmp_path / "out.csv")}],
    }


def wait_terminal(client, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/api/v1/jobs/{job_id}").json()
        if body["state"] in ("completed", "failed", "cancelled"):
            return body
        assert time.monotonic() < deadline
        time.sleep(0.02)


class TestJobService:
    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__, "jobs": 0}

    def test_submit_and_poll(self, client, job_payload, tmp_path):
        response = client.post("/api/v1/jobs", json=job_payload)
        assert response.status_code == 202
        job_id = response.json()["job_id"]

        body = wait_terminal(client, job_id)
        assert body["state"] == "completed"
        assert body["name"] == "copy"
        assert body["records_processed"] == 25
        assert body["records_emitted"] == 10
        assert (tmp_path / "out.csv").read_text().count("\n") == 11

        listed = client.get("/api/v1/jobs").json()
        assert [job["job_id"] for job in listed] == [job_id]

    def test_unknown_job_is_404(self, client):
        response = client.get("/api/v1/jobs/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert "Unknown job" in response.json()["detail"]

    def test_malformed_id_is_422(self, client):
        assert client.get("/api/v1/jobs/not-a-uuid").status_code == 422

    def test_invalid_spec_is_422(self, client, job_payload):
        job_payload["sinks"] = []
        assert client.post("/api/v1/jobs", json=job_payload).status_code == 422

    def test_unbuildable_job_is_422(self, client, job_payload):
        job_payload["stages"][0]["params"]["column"] = "nope"
        response = client.post("/api/v1/jobs", json=job_payload)
        assert response.status_code == 422
        assert "nope" in response.json()["detail"]

    def test_missing_source_is_422(self, client, job_payload, tmp_path):
        job_payload["sources"][0]["path"] = str(tmp_path / "missing.csv")
        assert client.post("/api/v1/jobs", json=job_payload).status_code == 422

    def test_cancel_finished_job(self, client, job_payload):
        job_id = client.post("/api/v1/jobs", json=job_payload).json()["job_id"]
        wait_terminal(client, job_id)
        response = client.post(f"/api/v1/jobs/{job_id}/cancel")
        assert response.status_code == 200
        assert response.json() == {"job_id": job_id, "cancelled": False}



class TestDataRoot:
    @pytest.fixture
    def confined(self, tmp_path):
        settings = ServiceSettings(
            data_root=tmp_path,
            engine=EngineSettings(
                workers=2,
                retry=RetrySettings(max_attempts=1, initial_delay=0, max_delay=0),
            ),
        )
        with TestClient(create_app(settings)) as client:
            yield client

    def test_paths_inside_root_are_accepted(self, confined, job_payload, tmp_path):
        job_payload["sinks"][0]["path"] = "results/out.csv"
        response = confined.post("/api/v1/jobs", json=job_payload)
        assert response.status_code == 202
        body = wait_terminal(confined, response.json()["job_id"])
        assert body["state"] == "completed"
        assert (tmp_path / "results" / "out.csv").exists()

    def test_sink_outside_root_is_rejected(self, confined, job_payload, tmp_path):
        outside = tmp_path.parent / f"{tmp_path.name}-escape" / "out.csv"
        job_payload["sinks"][0]["path"] = str(outside)
        response = confined.post("/api/v1/jobs", json=job_payload)
        assert response.status_code == 422
        assert "outside the data root" in response.json()["detail"]
        assert not outside.parent.exists()

    def test_source_outside_root_is_rejected(self, confined, job_payload):
        job_payload["sources"][0]["path"] = "../../etc/passwd"
        response = confined.post("/api/v1/jobs", json=job_payload)
        assert response.status_code == 422
        assert confined.get("/api/v1/jobs").json() == []

def test_cors_enabled_when_configured():
    app = create_app(ServiceSettings(cors_origins=["http://localhost:3000"]))
    with TestClient(app) as client:
        response = client.get(
            "/api/v1/health", headers={"Origin": "http://localhost:3000"}
        )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
