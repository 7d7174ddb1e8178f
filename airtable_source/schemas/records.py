from typing import Any, Optional, Union

from pydantic import BaseModel, Field

# Closed set of value kinds an Airtable cell can hold. Lists cover multi-selects,
# linked records and attachments; mappings cover collaborators, buttons, etc.
FieldValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]


class AirtableRecord(BaseModel):
    id: str
    created_time: Optional[str] = Field(None, alias="createdTime")
    fields: dict[str, FieldValue] = {}


class RecordPage(BaseModel):
    records: list[AirtableRecord] = []
    offset: Optional[str] = None


class TableField(BaseModel):
    id: str
    name: str
    type: Optional[str] = None


class TableSchema(BaseModel):
    id: str
    name: str
    fields: list[TableField] = []
