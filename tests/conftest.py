"""
Pytest configuration and shared fixtures for Citecast tests.
"""
import json
import re
from typing import Any, Callable, Dict, List, Optional

import pytest
from langchain_core.messages import AIMessage
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from citecast import schema  # noqa: F401  (registers tables)
from citecast.agents.copywriter import CopywriterAgent
from citecast.agents.profiler import ContextProfiler
from citecast.core.jobs import JobQueue, PipelineStages, Worker
from citecast.extraction import ExtractionResult
from citecast.schema import Source, SourceStatus, SourceType
from citecast.services.repository import PipelineRepository
from citecast.utils.llm_client import LLMClient

CHUNK_ID_PATTERN = re.compile(r"\[Chunk ID: ([0-9a-f-]+)\]")


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def repository(test_engine) -> PipelineRepository:
    return PipelineRepository(test_engine)


@pytest.fixture
def queue(repository) -> JobQueue:
    return JobQueue(repository, max_attempts=3)


@pytest.fixture
def project(repository):
    return repository.create_project(name="Field Notes", owner_id="user-1")


@pytest.fixture
def make_source(repository, project) -> Callable[..., Source]:
    """Factory for sources in any state."""
    def _make(
        status: SourceStatus = SourceStatus.UPLOADED,
        text: Optional[str] = None,
        **fields: Any,
    ) -> Source:
        values = {
            "project_id": project.id,
            "type": SourceType.FILE,
            "mime_type": "text/plain",
            "original_name": "notes.txt",
            "file_bytes": (text or "").encode("utf-8") or None,
            "extracted_text": text if status not in (SourceStatus.UPLOADED,) else None,
            "status": status,
        }
        values.update(fields)
        return repository.create_source(**values)
    return _make


# ============================================================================
# Fake Collaborators
# ============================================================================

class FakeExtractor:
    """Returns a canned ExtractionResult and records the sources it saw."""

    def __init__(self, result: Optional[ExtractionResult] = None):
        self.result = result or ExtractionResult(success=True, text="Extracted text.")
        self.calls: List[Any] = []

    async def extract(self, source):
        self.calls.append(source.id)
        return self.result


class ScriptedChatModel:
    """
    Stands in for ChatOpenAI. Each ainvoke call pops the next scripted
    response; a callable response receives the messages and builds one.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Any] = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        if not self.responses:
            raise RuntimeError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(messages)
        return AIMessage(content=response)


def chunk_ids_in(messages) -> List[str]:
    return CHUNK_ID_PATTERN.findall(messages[-1].content)


def profile_json(chunk_ids: List[str]) -> str:
    return json.dumps({
        "audience": "Early-stage founders",
        "tone": "Direct and practical",
        "themes": ["hiring", "focus"],
        "keyClaims": [
            {
                "claim": "Small teams ship faster",
                "chunkIds": [chunk_ids[0]],
                "quote": "small teams ship faster",
            }
        ],
    })


def generation_json(chunk_ids: List[str]) -> str:
    citation = [{"chunkId": chunk_ids[0], "quote": "small teams ship faster"}]
    carousel = {
        "type": "carousel",
        "slides": [
            {"slideNumber": 1, "content": "Why small teams win"},
            {"slideNumber": 2, "content": "They ship faster"},
        ],
        "caption": "Lessons from the field",
        "cta": "Save this for your next planning session",
        "hashtags": ["startups", "teams", "focus"],
        "citations": citation,
    }
    single = {
        "type": "single",
        "caption": "Focus beats headcount",
        "cta": "Tell us what you cut this week",
        "hashtags": ["startups", "focus", "founders"],
        "citations": citation,
    }
    tweet = {"content": "Small teams ship faster.", "hashtags": ["startups", "teams"], "citations": citation}
    linkedin = {
        "content": "Headcount is not velocity.\n\nSmall teams ship faster.",
        "hashtags": ["leadership", "startups", "teams"],
        "citations": citation,
    }
    return json.dumps({
        "instagram": {"carousels": [carousel, carousel], "singles": [single, single, single]},
        "twitter": [tweet] * 5,
        "linkedin": [linkedin] * 5,
    })


@pytest.fixture
def scripted_llm() -> Callable[..., LLMClient]:
    """Factory: LLMClient backed by a ScriptedChatModel."""
    def _make(responses: List[Any]) -> LLMClient:
        return LLMClient(model_name="test-model", chat_model=ScriptedChatModel(responses))
    return _make


@pytest.fixture
def profile_response():
    """Scripted response that cites the first chunk of the prompt."""
    return lambda messages: profile_json(chunk_ids_in(messages))


@pytest.fixture
def generation_response():
    """Scripted response with a valid 15-post batch citing the first chunk."""
    return lambda messages: generation_json(chunk_ids_in(messages))


@pytest.fixture
def no_backoff(mocker):
    """Skip the LLM client's retry sleeps."""
    return mocker.patch("citecast.utils.llm_client.asyncio.sleep", new_callable=mocker.AsyncMock)


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def build_pipeline(repository, queue, fake_extractor):
    """
    Factory for (stages, worker) wired to the test database with fake
    collaborators. Pass responses for the profile builder / copywriter.
    """
    def _build(
        extractor=None,
        profile_responses: Optional[List[Any]] = None,
        generation_responses: Optional[List[Any]] = None,
        max_chunk_size: int = 1500,
        overlap_size: int = 200,
    ):
        profiler = ContextProfiler(llm=LLMClient(model_name="test-model", chat_model=ScriptedChatModel(profile_responses)))
        copywriter = CopywriterAgent(llm=LLMClient(model_name="test-model", chat_model=ScriptedChatModel(generation_responses)))
        stages = PipelineStages(
            repository,
            queue,
            extractor=extractor or fake_extractor,
            profiler=profiler,
            copywriter=copywriter,
            max_chunk_size=max_chunk_size,
            overlap_size=overlap_size,
        )
        worker = Worker(repository, queue, stages, worker_id="worker-test", batch_size=5)
        return stages, worker
    return _build


@pytest.fixture
def recording_log():
    """Stand-in for JobLogger that keeps messages in memory."""
    class RecordingLog:
        def __init__(self):
            self.entries: List[Dict[str, Any]] = []

        def info(self, message, **meta):
            self.entries.append({"level": "info", "message": message, **meta})

        def warn(self, message, **meta):
            self.entries.append({"level": "warn", "message": message, **meta})

        def error(self, message, **meta):
            self.entries.append({"level": "error", "message": message, **meta})

        @property
        def messages(self):
            return [entry["message"] for entry in self.entries]

    return RecordingLog()
