"""Memory URL schema for knowledge addressing.

The memory:// URL scheme addresses an entity by permalink:

    memory://specs/search            # permalink specs/search
    memory:///specs/search           # same, leading slash ignored
"""

from pydantic import BaseModel, Field, field_validator

MEMORY_URL_SCHEME = "memory://"


class MemoryUrl(BaseModel):
    """memory:// URL scheme for knowledge addressing."""

    scheme: str = Field(default="memory", frozen=True)
    path: str

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate path is not empty."""
        v = v.strip().strip("/")
        if not v:
            raise ValueError("URL must include a permalink path")
        return v

    @classmethod
    def is_memory_url(cls, value: str) -> bool:
        return value.strip().startswith(MEMORY_URL_SCHEME)

    @classmethod
    def parse(cls, url_str: str) -> "MemoryUrl":
        """Parse a memory:// URL string."""
        url_str = url_str.strip()
        if not cls.is_memory_url(url_str):
            raise ValueError("URL must include scheme (memory://)")
        return cls(path=url_str[len(MEMORY_URL_SCHEME) :])

    def relative_path(self) -> str:
        """Get the permalink addressed by this URL."""
        return self.path

    def __str__(self) -> str:
        """Convert back to URL string."""
        return f"{MEMORY_URL_SCHEME}{self.path}"


def normalize_memory_url(value: str) -> str:
    """Strip the memory:// scheme if present, returning the permalink part.

    Never raises: a bare `memory://` normalizes to an empty string, which
    names no entity.
    """
    value = value.strip()
    if MemoryUrl.is_memory_url(value):
        return value[len(MEMORY_URL_SCHEME) :].strip().strip("/")
    return value
