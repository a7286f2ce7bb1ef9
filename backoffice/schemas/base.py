"""
Schema Base Classes

The JSON API speaks camelCase; Python code keeps snake_case. Every schema
accepts either spelling on input and emits camelCase.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for request and response bodies."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True  # Allows creating from ORM models


class SuccessResponse(CamelModel):
    success: bool = True
