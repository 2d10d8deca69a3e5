"""Base models — frozen records for server data, camelCase for API output."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SchoolRecord(BaseModel):
    """Base for entities loaded from the school API.

    Records are immutable: the aggregator replaces whole collections, it
    never patches a record in place.  Unknown server fields are ignored.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )


class CamelModel(BaseModel):
    """Base for every API output model; serializes as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
