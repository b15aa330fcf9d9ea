"""
Tests for ProjectService: validation, job enqueueing and rate limits.
"""
from uuid import uuid4

import pytest

from citecast.core.errors import (
    InvalidInputError, NotFoundError, PreconditionFailedError, RateLimitExceededError,
)
from citecast.core.jobs import JobQueue
from citecast.preprocessing.chunker import chunk_text
from citecast.schema import JobType, SourceStatus, SourceType
from citecast.services.projects import ProjectService
from citecast.services.rate_limit import RateLimiter


@pytest.fixture
def kick(mocker):
    return mocker.Mock()


@pytest.fixture
def service(repository, test_engine, kick):
    queue = JobQueue(repository, max_attempts=3, on_enqueue=kick)
    return ProjectService(repository, queue, RateLimiter(test_engine))


def jobs_of(repository, project, job_type):
    return [j for j in repository.list_jobs(project.id) if j.type == job_type]


@pytest.mark.unit
class TestProjectActions:
    def test_create_and_fetch(self, service):
        project = service.create_project("  Launch  ", owner_id="user-9", description="Q3 launch")

        assert project.name == "Launch"
        assert service.get_project(project.id).owner_id == "user-9"

    def test_blank_name(self, service):
        with pytest.raises(InvalidInputError, match="Project name is required"):
            service.create_project("", owner_id="user-9")

    def test_missing_project(self, service):
        with pytest.raises(NotFoundError):
            service.get_project(uuid4())

    def test_overview(self, service, project, make_source):
        make_source()

        overview = service.get_project_overview(project.id)

        assert overview["project"].id == project.id
        assert len(overview["sources"]) == 1
        assert overview["profile"] is None
        assert overview["runs"] == []


@pytest.mark.unit
class TestSources:
    def test_file_source_enqueues_extraction(self, service, repository, project, kick):
        source = service.add_file_source(project.id, "deck.pdf", "application/pdf", b"%PDF-1.4")

        assert source.status == SourceStatus.UPLOADED
        assert source.type == SourceType.FILE
        jobs = jobs_of(repository, project, JobType.EXTRACT_TEXT)
        assert [j.source_id for j in jobs] == [source.id]
        kick.assert_called_once()

    @pytest.mark.parametrize(
        "mime_type, data, message",
        [
            ("application/pdf", b"", "No file provided"),
            ("image/png", b"png", "Unsupported file type: image/png"),
        ],
    )
    def test_file_validation(self, service, repository, project, mime_type, data, message):
        with pytest.raises(InvalidInputError, match=message):
            service.add_file_source(project.id, "file", mime_type, data)
        assert repository.list_sources(project.id) == []

    def test_file_size_limit(self, service, project, mocker):
        mocker.patch("citecast.services.projects.settings.max_upload_bytes", 4)

        with pytest.raises(InvalidInputError, match="File size must be under"):
            service.add_file_source(project.id, "notes.txt", "text/plain", b"too large")

    def test_url_source(self, service, repository, project):
        source = service.add_url_source(project.id, " https://blog.example.com/posts/1 ")

        assert source.type == SourceType.URL
        assert source.url == "https://blog.example.com/posts/1"
        assert source.original_name == "blog.example.com"
        assert len(jobs_of(repository, project, JobType.EXTRACT_TEXT)) == 1

    @pytest.mark.parametrize("url", ["", "not a url", "ftp://example.com/file", "https://"])
    def test_invalid_url(self, service, project, url):
        with pytest.raises(InvalidInputError, match="Invalid URL"):
            service.add_url_source(project.id, url)

    def test_attach_transcript(self, service, repository, project, make_source):
        source = make_source(status=SourceStatus.FAILED, mime_type="video/mp4", error_message="not configured")

        updated = service.attach_transcript(source.id, "  Spoken notes.  ")

        assert updated.status == SourceStatus.EXTRACTED
        assert updated.transcript_text == "Spoken notes."
        assert updated.error_message is None
        assert [j.source_id for j in jobs_of(repository, project, JobType.CHUNK_TEXT)] == [source.id]

    def test_transcript_replaces_extracted_text(self, service, repository, make_source):
        """
        GIVEN a video whose extraction kept an unusable description as text
        WHEN a manual transcript is attached
        THEN the transcript is the text that gets chunked
        """
        source = make_source(status=SourceStatus.CHUNKED, text="Video description only.", mime_type="video/mp4")

        service.attach_transcript(source.id, "What was actually said.")

        stored = repository.get_source(source.id)
        assert stored.extracted_text is None
        assert stored.text == "What was actually said."

    def test_transcript_requires_text(self, service, make_source):
        source = make_source()

        with pytest.raises(InvalidInputError, match="Transcript text is required"):
            service.attach_transcript(source.id, "   ")

    def test_transcript_rejected_while_busy(self, service, make_source):
        source = make_source(status=SourceStatus.CHUNKING, text="partial")

        with pytest.raises(PreconditionFailedError):
            service.attach_transcript(source.id, "text")


@pytest.mark.unit
class TestProfileAndGeneration:
    @pytest.fixture
    def chunked(self, repository, make_source):
        source = make_source(status=SourceStatus.CHUNKED, text="Small teams ship faster. Focus wins.")
        repository.replace_chunks(source.id, chunk_text(source.extracted_text))
        return source

    def test_profile_requires_processed_sources(self, service, project, make_source):
        make_source(status=SourceStatus.EXTRACTED, text="not chunked yet")

        with pytest.raises(PreconditionFailedError, match="No processed sources available"):
            service.build_context_profile(project.id)

    def test_profile_enqueues_job(self, service, project, chunked):
        job = service.build_context_profile(project.id)

        assert job.type == JobType.BUILD_PROFILE
        assert job.project_id == project.id

    def test_generation_requires_profile(self, service, project):
        with pytest.raises(PreconditionFailedError, match="Context profile not found"):
            service.start_generation_run(project.id)

    def test_generation_creates_run_and_job(self, service, repository, project):
        repository.upsert_profile(project.id, audience="a", tone="t", themes=[], key_claims=[])

        run = service.start_generation_run(project.id)

        jobs = jobs_of(repository, project, JobType.GENERATE_POSTS)
        assert [j.run_id for j in jobs] == [run.id]
        assert service.get_run(run.id)["posts"] == []

    def test_rate_limit_is_per_owner(self, service, repository, project, chunked):
        """
        GIVEN an owner who spent their whole bucket
        WHEN they queue another profile build
        THEN it is refused with a retry hint, and other owners are unaffected
        """
        for _ in range(10):
            service.build_context_profile(project.id)

        with pytest.raises(RateLimitExceededError) as exc_info:
            service.build_context_profile(project.id)
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after_minutes == 1
        assert str(exc_info.value) == "Rate limit exceeded. Try again in 1 minutes."

        other = service.create_project("Other", owner_id="user-2")
        repository.upsert_profile(other.id, audience="a", tone="t", themes=[], key_claims=[])
        assert service.start_generation_run(other.id).project_id == other.id


@pytest.mark.unit
class TestSearchAndLookups:
    def test_search_ranks_project_chunks(self, service, repository, project, make_source):
        first = make_source(status=SourceStatus.CHUNKED, text="Hiring slowly keeps the culture intact.")
        second = make_source(status=SourceStatus.CHUNKED, text="Small teams ship faster. Teams stay focused.")
        for source in (first, second):
            repository.replace_chunks(source.id, chunk_text(source.extracted_text))

        results = service.search_chunks(project.id, "teams", limit=5)

        assert len(results) == 1
        assert results[0]["chunk"].source_id == second.id
        assert results[0]["score"] > 0

    def test_get_job_includes_logs(self, service, repository, project):
        job = service.queue.enqueue(project.id, JobType.BUILD_PROFILE)

        assert service.get_job(job.id)["logs"] == []
        with pytest.raises(NotFoundError):
            service.get_job(uuid4())

    def test_get_profile(self, service, repository, project):
        assert service.get_profile(project.id) is None
        repository.upsert_profile(project.id, audience="a", tone="t", themes=["x"], key_claims=[])
        assert service.get_profile(project.id).themes == ["x"]
