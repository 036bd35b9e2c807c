"""
Base schema for the API contract.

Clients exchange camelCase JSON (accountCode, debitAmount, ...)
while Python code keeps snake_case attribute names. Requests
accept either spelling.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }
