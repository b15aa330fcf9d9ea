"""
Typed shapes of generative model output.

Every model forbids unknown keys and uses the camelCase field names the
prompts ask for. Citations are checked against the chunk ids handed to the
model when a validation context carries them:

    ContextProfileOutput.model_validate_json(raw, context={"chunk_ids": {...}})
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .enums import Platform, InstagramType


class OutputModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class Citation(OutputModel):
    chunk_id: str = Field(..., alias="chunkId", description="ID of the chunk the quote comes from")
    quote: str = Field(..., max_length=150, description="Verbatim quote from the chunk")

    @field_validator("chunk_id")
    @classmethod
    def chunk_must_be_known(cls, value: str, info: ValidationInfo) -> str:
        allowed = (info.context or {}).get("chunk_ids")
        if allowed is not None and value not in allowed:
            raise ValueError(f"Unknown chunk id cited: {value}")
        return value


# ============================================
# CONTEXT PROFILE
# ============================================

class KeyClaim(OutputModel):
    claim: str
    chunk_ids: List[str] = Field(..., alias="chunkIds", min_length=1)
    quote: str

    @field_validator("chunk_ids")
    @classmethod
    def chunks_must_be_known(cls, value: List[str], info: ValidationInfo) -> List[str]:
        allowed = (info.context or {}).get("chunk_ids")
        if allowed is not None:
            unknown = [chunk_id for chunk_id in value if chunk_id not in allowed]
            if unknown:
                raise ValueError(f"Unknown chunk ids cited: {', '.join(unknown)}")
        return value


class ContextProfileOutput(OutputModel):
    audience: str = Field(..., description="Who the content is for")
    tone: str = Field(..., description="How the sources sound")
    themes: List[str] = Field(..., min_length=1)
    key_claims: List[KeyClaim] = Field(..., alias="keyClaims")


# ============================================
# POSTS
# ============================================

class Slide(OutputModel):
    slide_number: int = Field(..., alias="slideNumber", ge=1)
    content: str


class InstagramCarousel(OutputModel):
    type: Literal["carousel"]
    slides: List[Slide] = Field(..., min_length=2, max_length=10)
    caption: str
    cta: str
    hashtags: List[str] = Field(..., max_length=10)
    citations: List[Citation]


class InstagramSingle(OutputModel):
    type: Literal["single"]
    caption: str
    cta: str
    hashtags: List[str] = Field(..., max_length=10)
    citations: List[Citation]


InstagramPost = Annotated[Union[InstagramCarousel, InstagramSingle], Field(discriminator="type")]


class TwitterPost(OutputModel):
    content: str = Field(..., max_length=280)
    hashtags: List[str] = Field(..., min_length=2, max_length=4)
    citations: List[Citation]


class LinkedInPost(OutputModel):
    content: str
    hashtags: List[str] = Field(..., min_length=3, max_length=5)
    citations: List[Citation]


class InstagramBatch(OutputModel):
    carousels: List[InstagramPost] = Field(..., min_length=2, max_length=2)
    singles: List[InstagramPost] = Field(..., min_length=3, max_length=3)

    @field_validator("carousels")
    @classmethod
    def only_carousels(cls, value):
        if any(not isinstance(post, InstagramCarousel) for post in value):
            raise ValueError("carousels must only contain carousel posts")
        return value

    @field_validator("singles")
    @classmethod
    def only_singles(cls, value):
        if any(not isinstance(post, InstagramSingle) for post in value):
            raise ValueError("singles must only contain single posts")
        return value


class GenerationOutput(OutputModel):
    instagram: InstagramBatch
    twitter: List[TwitterPost] = Field(..., min_length=5, max_length=5)
    linkedin: List[LinkedInPost] = Field(..., min_length=5, max_length=5)


# ============================================
# FLATTENING TO POST RECORDS
# ============================================

def _record(platform: Platform, post: BaseModel, instagram_type: Optional[InstagramType] = None) -> Dict[str, Any]:
    return {
        "platform": platform,
        "instagram_type": instagram_type,
        "payload": post.model_dump(by_alias=True, exclude={"citations"}),
        "citations": [c.model_dump(by_alias=True) for c in post.citations],
    }


def instagram_record(post: Any) -> Dict[str, Any]:
    if isinstance(post, InstagramCarousel):
        return _record(Platform.INSTAGRAM, post, InstagramType.CAROUSEL)
    if isinstance(post, InstagramSingle):
        return _record(Platform.INSTAGRAM, post, InstagramType.SINGLE)
    raise TypeError(f"Unsupported Instagram post variant: {type(post).__name__}")


def flatten_posts(output: GenerationOutput) -> List[Dict[str, Any]]:
    """Turn a validated batch into GeneratedPost field dicts, in batch order."""
    records = [instagram_record(post) for post in output.instagram.carousels]
    records += [instagram_record(post) for post in output.instagram.singles]
    records += [_record(Platform.TWITTER, post) for post in output.twitter]
    records += [_record(Platform.LINKEDIN, post) for post in output.linkedin]
    return records
