from typing import Dict, Union

from pydantic import AliasChoices, Field

# scalar values only, nested structures are rejected at the boundary
MetadataValue = Union[bool, int, float, str, None]
Metadata = Dict[str, MetadataValue]


def id_field():
    return Field(validation_alias=AliasChoices("_id", "id"))
