"""
Shared base for API schemas.

Python code uses snake_case; the JSON wire format is camelCase, which is what
the dashboard front-end and the realtime payloads use.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys, as sent over the realtime channel."""
        return self.model_dump(mode="json", by_alias=True)
