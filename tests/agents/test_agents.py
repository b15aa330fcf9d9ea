"""
Tests for the profile builder and the copywriter agents and their prompts.
"""
from types import SimpleNamespace
from uuid import uuid4

import pytest

from citecast.agents.base import BaseAgent
from citecast.agents.copywriter import CopywriterAgent
from citecast.agents.profiler import ContextProfiler
from citecast.agents.prompts import (
    STRICTNESS_INSTRUCTIONS, TONE_INSTRUCTIONS, format_chunks, generation_user_prompt,
)
from citecast.core.errors import StructuredOutputError
from citecast.schema import HashtagDensity, Strictness, TonePreset

from conftest import generation_json, profile_json


@pytest.fixture
def chunks():
    return [
        SimpleNamespace(id=uuid4(), content="Small teams ship faster."),
        SimpleNamespace(id=uuid4(), content="Focus beats headcount."),
    ]


@pytest.fixture
def profile_dict(chunks):
    return {
        "audience": "Founders",
        "tone": "Direct",
        "themes": ["teams", "focus"],
        "key_claims": [{"claim": "Small teams ship faster", "chunkIds": [str(chunks[0].id)], "quote": "ship faster"}],
    }


@pytest.mark.unit
class TestBaseAgent:
    def test_missing_api_key(self, mocker):
        mocker.patch("citecast.agents.base.settings.openai_api_key", "")

        with pytest.raises(ValueError, match="OPENAI_API_KEY is missing."):
            ContextProfiler()

    @pytest.mark.asyncio
    async def test_run_must_be_implemented(self, scripted_llm):
        agent = BaseAgent(llm=scripted_llm([]))

        with pytest.raises(NotImplementedError):
            await agent.run()


@pytest.mark.unit
class TestPrompts:
    def test_chunks_are_labelled_with_ids(self, chunks):
        rendered = format_chunks(chunks)

        assert rendered.startswith(f"[Chunk ID: {chunks[0].id}]\nSmall teams ship faster.")
        assert "\n\n---\n\n" in rendered

    def test_generation_prompt_carries_profile_and_density(self, chunks, profile_dict):
        prompt = generation_user_prompt(profile_dict, chunks, HashtagDensity.HIGH)

        assert "- Target Audience: Founders" in prompt
        assert f'"Small teams ship faster" (from chunks: {chunks[0].id})' in prompt
        assert "Instagram: Use 8-10 hashtags." in prompt
        assert "Twitter: Use 4 hashtags." in prompt


@pytest.mark.unit
class TestContextProfiler:
    @pytest.mark.asyncio
    async def test_builds_profile(self, scripted_llm, chunks, profile_response):
        llm = scripted_llm([profile_response])
        profiler = ContextProfiler(llm=llm)

        profile = await profiler.run(chunks)

        assert profile.audience == "Early-stage founders"
        assert profile.key_claims[0].chunk_ids == [str(chunks[0].id)]
        user_prompt = llm.client.calls[0][-1].content
        assert all(f"[Chunk ID: {chunk.id}]" in user_prompt for chunk in chunks)

    @pytest.mark.asyncio
    async def test_rejects_invented_chunk_ids(self, scripted_llm, chunks, no_backoff):
        profiler = ContextProfiler(llm=scripted_llm([profile_json(["made-up"])] * 3))

        with pytest.raises(StructuredOutputError):
            await profiler.run(chunks)


@pytest.mark.unit
class TestCopywriterAgent:
    @pytest.mark.asyncio
    async def test_generates_batch_with_run_settings(self, scripted_llm, chunks, profile_dict, generation_response):
        llm = scripted_llm([generation_response])
        copywriter = CopywriterAgent(llm=llm)
        run = SimpleNamespace(
            id=uuid4(),
            tone_preset=TonePreset.INSPIRATIONAL,
            strictness=Strictness.STRICT,
            hashtag_density=HashtagDensity.LOW,
        )

        output = await copywriter.run(profile_dict, chunks, run)

        assert len(output.twitter) == 5
        system_prompt = llm.client.calls[0][0].content
        assert TONE_INSTRUCTIONS[TonePreset.INSPIRATIONAL] in system_prompt
        assert STRICTNESS_INSTRUCTIONS[Strictness.STRICT] in system_prompt
        assert "Instagram: Use 3-5 hashtags." in llm.client.calls[0][-1].content

    @pytest.mark.asyncio
    async def test_rejects_citations_outside_the_chunks(self, scripted_llm, chunks, profile_dict, no_backoff):
        copywriter = CopywriterAgent(llm=scripted_llm([generation_json([str(uuid4())])] * 3))
        run = SimpleNamespace(
            id=uuid4(),
            tone_preset=TonePreset.PROFESSIONAL,
            strictness=Strictness.MODERATE,
            hashtag_density=HashtagDensity.MEDIUM,
        )

        with pytest.raises(StructuredOutputError):
            await copywriter.run(profile_dict, chunks, run)
