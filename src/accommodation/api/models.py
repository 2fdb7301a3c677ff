"""Shared pydantic base for camelCase request bodies."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase keys on the wire and snake_case field names in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
