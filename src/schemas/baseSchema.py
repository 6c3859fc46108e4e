from typing import Annotated

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _object_id_to_str(value):
    return str(value) if value is not None else value


# PydanticObjectId on the document side, plain string on the wire
ObjectIdStr = Annotated[str, BeforeValidator(_object_id_to_str)]


def document_id():
    """Documents dump their id as `_id`; read schemas accept either and emit `id`"""
    return Field(..., validation_alias=AliasChoices("_id", "id"))


class CamelModel(BaseModel):
    """Booking, calendar and report payloads go over the wire in camelCase"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
