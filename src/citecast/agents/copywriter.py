from typing import Any, Dict, Sequence

from .base import BaseAgent
from .prompts import generation_system_prompt, generation_user_prompt
from citecast.schema import Chunk, GenerationRun
from citecast.schema.outputs import GenerationOutput


class CopywriterAgent(BaseAgent):
    """
    Writes the full post batch for a generation run: 2 Instagram carousels,
    3 Instagram singles, 5 tweets and 5 LinkedIn posts, every one cited.
    """

    async def run(
        self,
        profile: Dict[str, Any],
        chunks: Sequence[Chunk],
        run: GenerationRun,
    ) -> GenerationOutput:
        self.log.info(
            "generating_posts",
            run_id=str(run.id),
            tone=run.tone_preset.value,
            strictness=run.strictness.value,
            hashtag_density=run.hashtag_density.value,
            chunk_count=len(chunks),
        )

        output = await self.llm.generate_structured(
            GenerationOutput,
            system_prompt=generation_system_prompt(run.tone_preset, run.strictness),
            user_prompt=generation_user_prompt(profile, chunks, run.hashtag_density),
            context={"chunk_ids": {str(chunk.id) for chunk in chunks}},
        )

        self.log.info(
            "posts_generated",
            run_id=str(run.id),
            instagram=len(output.instagram.carousels) + len(output.instagram.singles),
            twitter=len(output.twitter),
            linkedin=len(output.linkedin),
        )
        return output
