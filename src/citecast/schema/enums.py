from enum import Enum

class SourceType(str, Enum):
    FILE = "file"
    URL = "url"


class SourceStatus(str, Enum):
    """Source lifecycle. Stages only ever move a source forward (or to FAILED)."""
    UPLOADED = "uploaded"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    CHUNKING = "chunking"
    CHUNKED = "chunked"
    PROFILING = "profiling"
    PROFILED = "profiled"
    FAILED = "failed"


class JobType(str, Enum):
    EXTRACT_TEXT = "extract_text"
    CHUNK_TEXT = "chunk_text"
    BUILD_PROFILE = "build_profile"
    GENERATE_POSTS = "generate_posts"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobLogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class RunStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TonePreset(str, Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    INSPIRATIONAL = "inspirational"


class Strictness(str, Enum):
    STRICT = "strict"      # Only verbatim-supported statements
    MODERATE = "moderate"  # Paraphrase allowed, no new facts
    LOOSE = "loose"        # Creative framing around cited claims


class HashtagDensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"


class InstagramType(str, Enum):
    CAROUSEL = "carousel"
    SINGLE = "single"
