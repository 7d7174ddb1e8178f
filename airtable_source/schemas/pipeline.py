from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SchemaDescriptor(BaseModel):
    """Per-table model handed to downstream consumers (serialized with camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    source: str
    model_name: str = Field(alias="modelName")
    model_label: str = Field(alias="modelLabel")
    project_id: str = Field(alias="projectId")
    field_names: list[str] = Field(default_factory=list, alias="fieldNames")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class SetupQuestion(BaseModel):
    type: str  # "number" | "text" | "password" | "checkbox" | "confirm"
    name: str
    message: str
    choices: Optional[list[str]] = None
    default: Any = None
