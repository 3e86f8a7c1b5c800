from datetime import datetime, timezone
from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Get the current UTC timestamp.

    Returns:
        Current datetime with UTC timezone information

    Note:
        Used as default_factory for record and operation timestamps so that
        audit times are UTC regardless of system timezone.
    """
    return datetime.now(tz=timezone.utc)


class DocumentModel(BaseModel):
    """Base for every persisted or published shape.

    Attributes are snake_case in Python and camelCase on the wire, which is
    the durable field naming of the stored documents.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Dump to a storage document using the camelCase field names."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Self:
        """Build a model from a storage document, ignoring storage-only keys."""
        return cls.model_validate({k: v for k, v in document.items() if k != "_id"})
