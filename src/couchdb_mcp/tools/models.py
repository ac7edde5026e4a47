"""Pydantic models for MCP tool descriptors, query clauses and responses.

Key Components:
    - ArgumentSpec / ToolDescriptor: declarative tool schemas, rendered for
      advertising and consulted for argument validation
    - FilterClause / SortClause: simplified query description accepted by
      queryDocuments
    - CompiledQuery: Mango query produced by the query compiler
    - ResponseEnvelope: uniform tool result wrapper

Design Principles:
    - Descriptors are frozen; they are defined once at import time
    - Field descriptions double as MCP tool documentation
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# A string containing at least one non-whitespace character
NON_BLANK_PATTERN = r"\S"

JsonType = Literal["string", "number", "integer", "boolean", "object", "array"]


# =============================================================================
# TOOL DESCRIPTORS
# =============================================================================


class ArgumentSpec(BaseModel):
    """Declarative schema for one tool argument.

    A type of None accepts any JSON value. ``items`` is the JSON schema of array
    elements and is advertised verbatim.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Argument name as sent by the client")
    type: JsonType | None = Field(None, description="JSON schema type, None for any value")
    description: str = Field("", description="Human readable description")
    required: bool = Field(False, description="Whether the argument must be present")
    non_empty: bool = Field(
        False, description="Strings must contain a non-whitespace character"
    )
    items: dict[str, Any] | None = Field(None, description="JSON schema for array items")
    default: Any = Field(None, description="Advertised default value")

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {}
        if self.type is not None:
            schema["type"] = self.type
        if self.items is not None:
            schema["items"] = self.items
        if self.non_empty:
            schema["minLength"] = 1
            schema["pattern"] = NON_BLANK_PATTERN
        if self.default is not None:
            schema["default"] = self.default
        if self.description:
            schema["description"] = self.description
        return schema


class ToolDescriptor(BaseModel):
    """Static description of one MCP tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool name")
    description: str = Field(..., description="Tool description shown to the agent")
    arguments: tuple[ArgumentSpec, ...] = Field(default=(), description="Declared arguments")
    gated: bool = Field(False, description="Only available at or above the minimum tier")

    @property
    def required_arguments(self) -> list[str]:
        return [argument.name for argument in self.arguments if argument.required]

    def input_schema(self) -> dict[str, Any]:
        """MCP ``inputSchema`` for this tool."""
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {
                argument.name: argument.to_json_schema() for argument in self.arguments
            },
        }
        if self.required_arguments:
            schema["required"] = self.required_arguments
        return schema

    def to_mcp_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


# =============================================================================
# QUERY MODELS
# =============================================================================


class FilterClause(BaseModel):
    """One condition of a simplified query.

    Operators: ==, !=, >, <, >=, <=, in, nin, exists, type, regex.
    Anything else compiles to equality.
    """

    field: str = Field(..., min_length=1, description="Field name to filter by")
    value: Any = Field(..., description="Value to compare against")
    operator: str = Field("==", description="Comparison operator")

    @field_validator("operator", mode="before")
    @classmethod
    def default_operator(cls, value: Any) -> Any:
        return "==" if value is None else value


class SortClause(BaseModel):
    """One sort key. Sequence order of clauses is sort precedence."""

    field: str = Field(..., min_length=1, description="Field name to sort by")
    order: str = Field("asc", description="'asc' or 'desc'; anything else sorts ascending")

    @field_validator("order", mode="before")
    @classmethod
    def default_order(cls, value: Any) -> Any:
        return "asc" if value is None else value

    @property
    def direction(self) -> Literal["asc", "desc"]:
        return "desc" if self.order == "desc" else "asc"


class CompiledQuery(BaseModel):
    """Mango query built by the query compiler.

    Optional parts are None when not requested and are left out of the Mango
    document entirely.
    """

    model_config = ConfigDict(frozen=True)

    selector: dict[str, Any] = Field(default_factory=dict)
    limit: int | float | None = None
    skip: int | float | None = None
    fields: list[str] | None = None
    sort: list[dict[str, str]] | None = None

    def to_mango(self) -> dict[str, Any]:
        """Mango request body with only the keys that were set."""
        query: dict[str, Any] = {"selector": self.selector}
        if self.limit is not None:
            query["limit"] = self.limit
        if self.skip is not None:
            query["skip"] = self.skip
        if self.fields is not None:
            query["fields"] = list(self.fields)
        if self.sort is not None:
            query["sort"] = [dict(entry) for entry in self.sort]
        return query


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class TextContent(BaseModel):
    """A text content item of a tool result."""

    type: Literal["text"] = "text"
    text: str


class ResponseEnvelope(BaseModel):
    """Uniform result of every dispatched tool call, success or recovered failure."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: bool | None = Field(None, alias="isError")

    @classmethod
    def success(cls, text: str) -> "ResponseEnvelope":
        return cls(content=[TextContent(text=text)])

    @classmethod
    def failure(cls, message: str) -> "ResponseEnvelope":
        return cls(content=[TextContent(text=f"Error: {message}")], is_error=True)

    @property
    def text(self) -> str:
        return "\n".join(item.text for item in self.content)

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``isError`` present only on failures."""
        return self.model_dump(by_alias=True, exclude_none=True)
