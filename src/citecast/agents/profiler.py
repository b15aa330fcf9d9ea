from typing import Sequence

from .base import BaseAgent
from .prompts import PROFILE_SYSTEM_PROMPT, profile_user_prompt
from citecast.schema import Chunk
from citecast.schema.outputs import ContextProfileOutput


class ContextProfiler(BaseAgent):
    """
    Condenses a project's chunks into audience, tone, themes and cited key claims.
    """

    async def run(self, chunks: Sequence[Chunk]) -> ContextProfileOutput:
        self.log.info("building_context_profile", chunk_count=len(chunks))

        profile = await self.llm.generate_structured(
            ContextProfileOutput,
            system_prompt=PROFILE_SYSTEM_PROMPT,
            user_prompt=profile_user_prompt(chunks),
            context={"chunk_ids": {str(chunk.id) for chunk in chunks}},
        )

        self.log.info(
            "context_profile_built",
            themes=len(profile.themes),
            claims=len(profile.key_claims),
        )
        return profile
