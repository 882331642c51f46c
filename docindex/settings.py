"""
Runtime settings for docindex.

Provides configuration management using Pydantic settings with support for:
- Environment variables with DOCINDEX_ prefix
- .env file loading
- Runtime settings override
- Type validation and defaults

Settings only choose defaults for a service (engine backend, storage root,
result limit, id hash, FTS tokenizer). Index state itself is never persisted.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Literal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from docindex.identity import HASHERS

if TYPE_CHECKING:
    from docindex.protocols.engine import TextSearchEngine  # noqa: F401
    from docindex.service import DocIndexService  # noqa: F401


__all__ = [
    "DocIndexSettings",
    "docindex_settings",
    "get_engine",
    "get_service",
]


class DocIndexSettings(BaseSettings):
    """
    Application settings for docindex.

    Settings can be configured via:
    - Environment variables (prefixed with DOCINDEX_)
    - .env file in the working directory
    - Direct instantiation with parameters
    - Runtime override using the override() method

    Attributes:
        engine: Text search engine backend ("fts" for SQLite FTS5, "memory" for in-process)
        storage_root: Directory under which per-index storage is allocated (system temp if unset)
        search_limit: Default maximum number of hits returned by search
        hash_algorithm: Algorithm deriving document ids from document names
        fts_tokenizer: FTS5 tokenizer spec used for new indexes
        busy_timeout: Seconds a SQLite connection waits on a locked database
    """

    engine: Literal["fts", "memory"] = Field("fts", description="Text search engine backend")

    storage_root: Path | None = Field(
        None,
        description="Directory for per-index storage (defaults to the system temp directory)",
    )

    search_limit: int = Field(10, ge=1, description="Default maximum number of search hits")

    hash_algorithm: str = Field("xxh3_128", description="Document id hash algorithm")

    fts_tokenizer: str = Field("unicode61", description="FTS5 tokenizer spec (e.g. 'porter unicode61', 'trigram')")

    busy_timeout: float = Field(5.0, gt=0, description="SQLite busy timeout in seconds")

    @field_validator("hash_algorithm")
    @classmethod
    def check_hash_algorithm(cls, v):
        # type: (str) -> str
        """
        Reject hash algorithms without a registered implementation.

        :param v: Algorithm name
        :return: Validated algorithm name
        """
        if v not in HASHERS:
            raise ValueError(f"Unknown hash algorithm '{v}', expected one of {sorted(HASHERS)}")
        return v

    model_config = SettingsConfigDict(
        env_prefix="DOCINDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    def override(self, update=None):
        # type: (dict|None) -> DocIndexSettings
        """
        Returns an updated and validated deep copy of the current settings instance.

        :param update: Dictionary of field names and values to override.
        :return: New DocIndexSettings instance with updated and validated fields.
        """

        update = update or {}

        settings = self.model_copy(deep=True)
        # Assign fields individually so validation gets triggered
        for field, value in update.items():
            setattr(settings, field, value)
        return settings


docindex_settings = DocIndexSettings()


def get_engine(settings=None):
    # type: (DocIndexSettings|None) -> TextSearchEngine
    """
    Factory function to create the text search engine selected by settings.

    :param settings: Settings to use (defaults to module-level docindex_settings)
    :return: Engine implementing TextSearchEngine
    :raises ValueError: If the engine name is not supported
    """
    settings = settings or docindex_settings

    if settings.engine == "fts":
        from docindex.engines.fts import FtsEngine

        return FtsEngine(tokenizer=settings.fts_tokenizer, busy_timeout=settings.busy_timeout)

    if settings.engine == "memory":
        from docindex.engines.memory import MemoryEngine

        return MemoryEngine()

    raise ValueError(f"Unsupported engine: '{settings.engine}'. Supported engines: fts, memory")  # pragma: no cover


def get_service(settings=None):
    # type: (DocIndexSettings|None) -> DocIndexService
    """
    Factory function to create a service wired from settings.

    :param settings: Settings to use (defaults to module-level docindex_settings)
    :return: New DocIndexService with its own empty registry
    """
    from docindex.service import DocIndexService

    settings = settings or docindex_settings
    return DocIndexService(engine=get_engine(settings), settings=settings)
