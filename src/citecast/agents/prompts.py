"""
Prompt templates for the profile builder and the copywriter.
"""
import json
from typing import Any, Dict, Iterable

from citecast.schema.enums import HashtagDensity, Platform, Strictness, TonePreset

# ============================================
# CONTEXT PROFILE
# ============================================

PROFILE_SYSTEM_PROMPT = """You are an expert content analyst. Read the source material and build a context profile that later drives social media content generation.

From the chunks provided, identify:
1. Audience - who this material is written for
2. Tone - the voice and personality of the material
3. Themes - the topics that keep coming back
4. Key claims - the important statements, each backed by a quote

RULES:
- Only use information present in the source material
- Never invent or assume facts the sources do not state
- Cite the exact chunk IDs that support each claim
- Quotes must be verbatim from the sources (max 25 words)"""

PROFILE_OUTPUT_SCHEMA = {
    "audience": "string - who the content is for",
    "tone": "string - tone and voice characteristics",
    "themes": ["main themes"],
    "keyClaims": [
        {
            "claim": "string - the key claim",
            "chunkIds": ["IDs of the chunks supporting the claim"],
            "quote": "string - supporting quote (max 25 words)",
        }
    ],
}


def format_chunks(chunks: Iterable[Any], separator: str = "\n\n---\n\n") -> str:
    """Render chunks as '[Chunk ID: <id>]' blocks the model can cite."""
    return separator.join(f"[Chunk ID: {chunk.id}]\n{chunk.content}" for chunk in chunks)


def profile_user_prompt(chunks: Iterable[Any]) -> str:
    return (
        "Analyze the following content chunks and create a context profile:\n\n"
        f"{format_chunks(chunks)}\n\n"
        "Respond with a JSON object matching this schema:\n"
        f"{json.dumps(PROFILE_OUTPUT_SCHEMA, indent=2)}"
    )


# ============================================
# CONTENT GENERATION
# ============================================

TONE_INSTRUCTIONS = {
    TonePreset.PROFESSIONAL: "Write with a professional, authoritative voice. Formal but accessible, centered on expertise and credibility.",
    TonePreset.CASUAL: "Write like a friend talking. Approachable, relatable, simple language that keeps people reading.",
    TonePreset.INSPIRATIONAL: "Write with an uplifting, motivating voice. Encouraging and positive, centered on change and possibility.",
}

STRICTNESS_INSTRUCTIONS = {
    Strictness.STRICT: "Every claim MUST carry a direct citation from the source material. Make no claim without explicit support.",
    Strictness.MODERATE: "Main claims need citations. Minor observations may be implied by the overall material.",
    Strictness.LOOSE: "Cite the key claims. Reasonable inferences from the source material are allowed.",
}

HASHTAG_LIMITS = {
    Platform.INSTAGRAM: {HashtagDensity.LOW: "3-5", HashtagDensity.MEDIUM: "6-8", HashtagDensity.HIGH: "8-10"},
    Platform.TWITTER: {HashtagDensity.LOW: "2", HashtagDensity.MEDIUM: "3", HashtagDensity.HIGH: "4"},
    Platform.LINKEDIN: {HashtagDensity.LOW: "3", HashtagDensity.MEDIUM: "4", HashtagDensity.HIGH: "5"},
}

GENERATION_OUTPUT_SCHEMA = {
    "instagram": {
        "carousels": [
            {
                "type": "carousel",
                "slides": [
                    {"slideNumber": 1, "content": "slide text"},
                    {"slideNumber": 2, "content": "slide text"},
                ],
                "caption": "caption text",
                "cta": "call to action",
                "hashtags": ["hashtag1", "hashtag2"],
                "citations": [{"chunkId": "chunk_id", "quote": "quote from source"}],
            }
        ],
        "singles": [
            {
                "type": "single",
                "caption": "caption text",
                "cta": "call to action",
                "hashtags": ["hashtag1"],
                "citations": [{"chunkId": "chunk_id", "quote": "quote from source"}],
            }
        ],
    },
    "twitter": [
        {
            "content": "tweet text (max 280 chars)",
            "hashtags": ["hashtag1", "hashtag2"],
            "citations": [{"chunkId": "chunk_id", "quote": "quote from source"}],
        }
    ],
    "linkedin": [
        {
            "content": "post text with\nline breaks",
            "hashtags": ["hashtag1", "hashtag2", "hashtag3"],
            "citations": [{"chunkId": "chunk_id", "quote": "quote from source"}],
        }
    ],
}


def hashtag_instructions(density: HashtagDensity, platform: Platform) -> str:
    return f"Use {HASHTAG_LIMITS[platform][density]} hashtags."


def generation_system_prompt(tone: TonePreset, strictness: Strictness) -> str:
    return f"""You are an expert social media content creator. Write engaging content for Instagram, Twitter/X and LinkedIn from the context profile and source material provided.

TONE:
{TONE_INSTRUCTIONS[tone]}

CITATIONS:
{STRICTNESS_INSTRUCTIONS[strictness]}

RULES:
1. NEVER invent facts, statistics or claims that are not in the source material
2. NEVER reference current trends, memes or time-sensitive content
3. NEVER reuse phrasing across platforms; every platform gets its own wording
4. Every post includes citations pointing at source chunk IDs
5. Citation quotes are verbatim from the sources (max 25 words)

PLATFORMS:
- Instagram: visual-friendly language, CTAs that invite engagement.
- Twitter/X: concise and punchy, under 280 characters, no emojis unless the tone calls for them.
- LinkedIn: professional and thought-provoking with readable line breaks, no emojis unless the tone calls for them."""


def _format_claims(key_claims) -> str:
    return "; ".join(
        f"\"{claim['claim']}\" (from chunks: {', '.join(claim['chunkIds'])})"
        for claim in key_claims
    )


def generation_user_prompt(profile: Dict[str, Any], chunks: Iterable[Any], density: HashtagDensity) -> str:
    """
    Build the generation request.

    profile uses the stored ContextProfile shape: audience, tone, themes
    and key_claims (camelCase claim dicts).
    """
    return f"""CONTEXT PROFILE:
- Target Audience: {profile['audience']}
- Tone/Voice: {profile['tone']}
- Main Themes: {', '.join(profile['themes'])}
- Key Claims: {_format_claims(profile['key_claims'])}

SOURCE CHUNKS FOR REFERENCE:
{format_chunks(chunks)}

HASHTAG DENSITY:
- Instagram: {hashtag_instructions(density, Platform.INSTAGRAM)}
- Twitter: {hashtag_instructions(density, Platform.TWITTER)}
- LinkedIn: {hashtag_instructions(density, Platform.LINKEDIN)}

Generate social media content matching this exact JSON schema:
{json.dumps(GENERATION_OUTPUT_SCHEMA, indent=2)}

Requirements:
- Instagram: exactly 2 carousel posts (2-10 slides each) and 3 single posts
- Twitter: exactly 5 tweets, each under 280 characters
- LinkedIn: exactly 5 posts

Respond with ONLY the JSON object."""
