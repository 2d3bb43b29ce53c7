"""Shared pydantic base schema for SEOMaster's JSON API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema using camelCase on the wire.

    Fields are declared in snake_case and serialized as camelCase
    (``report_data`` -> ``reportData``). Input accepts either spelling.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
