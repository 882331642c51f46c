"""
Engine-independent value types returned by the service.

Search and dump results are mapped onto these plain models so callers never
see engine-specific row or hit objects.
"""

from pydantic import BaseModel, ConfigDict, Field


__all__ = ["Document", "IndexInfo", "FIELD_INDEX", "FIELD_ID", "FIELD_NAME", "FIELD_CONTENT", "SEARCH_FIELDS"]


# Field names of a stored document record
FIELD_INDEX = "index_name"
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_CONTENT = "content"

# Fields analyzed by the engine and matched by keyword queries
SEARCH_FIELDS = (FIELD_NAME, FIELD_CONTENT)


class Document(BaseModel):
    """A stored document as seen by callers."""

    model_config = ConfigDict(frozen=True)

    index_name: str = Field(description="Name of the index holding the document")
    id: str = Field(description="Stable identifier derived from the document name")
    name: str = Field(description="Document name (upsert key)")
    content: str = Field(description="Document text")

    @classmethod
    def from_fields(cls, fields):
        # type: (dict) -> Document
        """
        Build a Document from an engine field mapping.

        :param fields: Mapping with index_name, id, name and content keys
        :return: Document value
        """
        return cls(
            index_name=fields[FIELD_INDEX],
            id=fields[FIELD_ID],
            name=fields[FIELD_NAME],
            content=fields[FIELD_CONTENT],
        )

    def to_fields(self):
        # type: () -> dict[str, str]
        """Return the field mapping handed to engine writers."""
        return {
            FIELD_INDEX: self.index_name,
            FIELD_ID: self.id,
            FIELD_NAME: self.name,
            FIELD_CONTENT: self.content,
        }


class IndexInfo(BaseModel):
    """Metadata about a registered index."""

    name: str
    documents: int = Field(0, ge=0, description="Number of live document records")
    size: int = Field(0, ge=0, description="Size of the backing storage in bytes")
