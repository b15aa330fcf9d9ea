"""
Tests for the HTTP surface: scheduled sweep auth, project actions and polling.
"""
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from citecast.api.app import app, get_runtime, get_settings
from citecast.config import Settings
from citecast.core.runtime import build_runtime
from citecast.preprocessing.chunker import chunk_text
from citecast.schema import JobLogLevel, JobType, SourceStatus, SourceType

CRON_SECRET = "test-cron-secret"


@pytest.fixture
def runtime(test_engine):
    return build_runtime(test_engine, worker_id="worker-api", immediate_sweeps=False)


@pytest.fixture
def client(runtime):
    """TestClient without the lifespan so startup never touches the app database."""
    app.dependency_overrides[get_runtime] = lambda: runtime
    app.dependency_overrides[get_settings] = lambda: Settings(cron_secret=CRON_SECRET)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_project(client, runtime):
    response = client.post("/projects", json={"name": "Field Notes", "owner_id": "user-1"})
    return runtime.projects.get_project(UUID(response.json()["id"]))


def auth(secret=CRON_SECRET):
    return {"Authorization": f"Bearer {secret}"}


@pytest.mark.unit
class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


@pytest.mark.unit
class TestCronWorker:
    def test_missing_secret_configuration(self, client):
        app.dependency_overrides[get_settings] = lambda: Settings(cron_secret="")

        response = client.post("/cron/worker", headers=auth())

        assert response.status_code == 500
        assert response.json()["detail"] == "CRON_SECRET not configured"

    def test_wrong_secret(self, client):
        response = client.post("/cron/worker", headers=auth("nope"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"

    def test_missing_header(self, client):
        assert client.get("/cron/worker").status_code == 401

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_empty_sweep(self, client, method):
        response = getattr(client, method)("/cron/worker", headers=auth())

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert (body["processed"], body["errors"]) == (0, 0)
        assert "timestamp" in body

    def test_sweep_processes_due_jobs(self, client, runtime, api_project):
        source = runtime.repository.create_source(
            project_id=api_project.id,
            type=SourceType.FILE,
            mime_type="text/plain",
            original_name="notes.txt",
            file_bytes=b"Small teams ship faster.",
        )
        runtime.queue.enqueue(source.project_id, JobType.EXTRACT_TEXT, source_id=source.id)

        body = client.post("/cron/worker", headers=auth()).json()

        assert (body["processed"], body["errors"]) == (2, 0)
        assert runtime.repository.get_source(source.id).status == SourceStatus.CHUNKED


@pytest.mark.unit
class TestProjects:
    def test_create_project(self, client):
        response = client.post("/projects", json={"name": "  Launch  ", "owner_id": "user-1"})

        assert response.status_code == 201
        assert response.json()["name"] == "Launch"

    def test_blank_name_rejected(self, client):
        response = client.post("/projects", json={"name": " ", "owner_id": "user-1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Project name is required"

    def test_unknown_project(self, client):
        response = client.get(f"/projects/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"] == "Project not found"

    def test_overview_hides_file_bytes(self, client, api_project):
        client.post(f"/projects/{api_project.id}/sources/url", json={"url": "https://example.com/post"})

        body = client.get(f"/projects/{api_project.id}").json()

        assert body["project"]["id"] == str(api_project.id)
        assert len(body["sources"]) == 1
        assert "file_bytes" not in body["sources"][0]
        assert body["sources"][0]["original_name"] == "example.com"
        assert body["profile"] is None
        assert body["jobs"][0]["type"] == "extract_text"


@pytest.mark.unit
class TestSources:
    def test_add_url_source(self, client, api_project):
        response = client.post(f"/projects/{api_project.id}/sources/url", json={"url": "https://example.com/a"})

        assert response.status_code == 202
        assert response.json()["status"] == "uploaded"

    def test_invalid_url(self, client, api_project):
        response = client.post(f"/projects/{api_project.id}/sources/url", json={"url": "ftp://example.com"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid URL"

    def test_attach_transcript(self, client, runtime, api_project):
        source = runtime.repository.create_source(
            project_id=api_project.id, type=SourceType.FILE, mime_type="audio/mpeg", status=SourceStatus.FAILED
        )

        response = client.post(f"/sources/{source.id}/transcript", json={"text": "We talked about focus."})

        assert response.status_code == 202
        assert response.json()["status"] == "extracted"
        assert response.json()["text_length"] == len("We talked about focus.")

    def test_transcript_for_unknown_source(self, client):
        response = client.post(f"/sources/{uuid4()}/transcript", json={"text": "hello"})

        assert response.status_code == 404


@pytest.mark.unit
class TestProfileAndRuns:
    @pytest.fixture
    def chunked_source(self, runtime, api_project):
        source = runtime.repository.create_source(
            project_id=api_project.id,
            type=SourceType.FILE,
            mime_type="text/plain",
            extracted_text="# Notes\n\nSmall teams ship faster.",
            status=SourceStatus.CHUNKED,
        )
        runtime.repository.replace_chunks(source.id, chunk_text(source.extracted_text))
        return source

    def test_profile_needs_processed_sources(self, client, api_project):
        response = client.post(f"/projects/{api_project.id}/profile")

        assert response.status_code == 409
        assert response.json()["detail"].startswith("No processed sources available")

    def test_profile_queues_job(self, client, api_project, chunked_source):
        response = client.post(f"/projects/{api_project.id}/profile")

        assert response.status_code == 202
        assert response.json()["type"] == "build_profile"
        assert response.json()["status"] == "pending"

    def test_rate_limit(self, client, api_project, chunked_source):
        for _ in range(10):
            assert client.post(f"/projects/{api_project.id}/profile").status_code == 202

        response = client.post(f"/projects/{api_project.id}/profile")

        assert response.status_code == 429
        assert response.json()["detail"] == "Rate limit exceeded. Try again in 1 minutes."
        assert response.headers["Retry-After"] == "60"

    def test_run_needs_profile(self, client, api_project):
        response = client.post(f"/projects/{api_project.id}/runs", json={})

        assert response.status_code == 409

    def test_run_and_poll(self, client, runtime, api_project):
        runtime.repository.upsert_profile(
            api_project.id, audience="Founders", tone="Direct", themes=["focus"], key_claims=[]
        )

        response = client.post(
            f"/projects/{api_project.id}/runs",
            json={"tone_preset": "casual", "strictness": "strict", "hashtag_density": "low"},
        )

        assert response.status_code == 202
        run = response.json()
        assert (run["tone_preset"], run["strictness"], run["hashtag_density"]) == ("casual", "strict", "low")

        polled = client.get(f"/runs/{run['id']}").json()
        assert polled["run"]["status"] == "pending"
        assert polled["posts"] == []

    def test_unknown_run_and_job(self, client):
        assert client.get(f"/runs/{uuid4()}").status_code == 404
        assert client.get(f"/jobs/{uuid4()}").status_code == 404

    def test_job_with_logs(self, client, runtime, api_project):
        job = runtime.queue.enqueue(api_project.id, JobType.BUILD_PROFILE)
        runtime.repository.append_log(job.id, JobLogLevel.INFO, "Starting context profile generation")

        body = client.get(f"/jobs/{job.id}").json()

        assert body["job"]["id"] == str(job.id)
        assert body["logs"][0]["message"] == "Starting context profile generation"

    def test_search_chunks(self, client, api_project, chunked_source):
        response = client.get(f"/projects/{api_project.id}/chunks/search", params={"q": "teams"})

        body = response.json()
        assert response.status_code == 200
        assert body["query"] == "teams"
        assert len(body["results"]) == 1
        assert body["results"][0]["source_id"] == str(chunked_source.id)
        assert body["results"][0]["score"] > 0
