"""Callback tools the model may invoke during a chat or agent run.

Every tool is a :class:`Tool` subclass declaring a name, a description and a
pydantic model for its arguments. The same model produces the JSON schema sent
to the provider and validates the arguments the provider sends back, so adding
a tool never touches the handlers' control flow: build it, put it in a
:class:`ToolSet`, hand the set to the handler.

Tools that need document search receive a retrieval *factory* and create a
fresh :class:`~retrieval.service.RetrievalService` on every call.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional, Type

from pydantic import BaseModel, Field, ValidationError
from tzlocal import get_localzone_name

from retrieval.service import RetrievalFactory

from .llm_client import ToolCall

logger = logging.getLogger(__name__)

MOCK_LOCATION = {"lat": 37.7749, "lon": -122.4194}
MOCK_WEATHER = {"value": 25, "description": "Sunny"}


class ToolError(Exception):
    """Base class for tool dispatch failures."""


class ToolNotFoundError(ToolError):
    pass


class ToolArgumentsError(ToolError):
    pass


# ---------- Stub lookups ----------
def get_location() -> Dict[str, float]:
    return dict(MOCK_LOCATION)


def get_weather(lat: float, lon: float, unit: str) -> Dict[str, Any]:
    # Mocked: the reading does not depend on the coordinates or unit.
    return dict(MOCK_WEATHER)


def get_current_date(now: Optional[datetime] = None) -> Dict[str, str]:
    """Return today's UTC calendar date and the server's IANA timezone."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return {"date": now.date().isoformat(), "timezone": get_localzone_name() or "UTC"}


# ---------- Argument models ----------
class NoArguments(BaseModel):
    pass


class SourcesQuery(BaseModel):
    query: str = Field(
        ...,
        description=(
            "The search query to find relevant supplementary materials, resources, "
            "and the schedule/calendar for the bootcamp"
        ),
    )


class WeatherArguments(BaseModel):
    lat: float = Field(..., description="The latitude of the location")
    lon: float = Field(..., description="The longitude of the location")
    unit: Literal["C", "F"] = Field(..., description="The unit to display the temperature in")


class DocumentQuery(BaseModel):
    query: str = Field(..., description="The search query to find relevant documents")


# ---------- Tool abstraction ----------
class Tool(ABC):
    """A capability exposed to the model."""

    name: str
    description: str
    parameters: Type[BaseModel] = NoArguments

    def definition(self) -> Dict[str, object]:
        """Return the provider-facing function declaration."""
        schema = self.parameters.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }

    def parse_arguments(self, raw: str) -> BaseModel:
        try:
            return self.parameters.model_validate_json(raw or "{}")
        except ValidationError as exc:
            raise ToolArgumentsError(f"Invalid arguments for tool '{self.name}': {exc}") from exc

    @abstractmethod
    def execute(self, arguments: BaseModel) -> Any:
        """Run the tool with validated arguments."""


class ToolSet:
    """Ordered collection of tools addressed by name."""

    def __init__(self, tools: Iterable[Tool]) -> None:
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name '{tool.name}'")
            self._tools[tool.name] = tool

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> List[Dict[str, object]]:
        return [tool.definition() for tool in self._tools.values()]

    def _lookup(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Model requested unknown tool '{name}'")
        return tool

    def arguments(self, call: ToolCall) -> Dict[str, Any]:
        """Return the validated arguments of ``call`` as plain data."""
        return self._lookup(call.name).parse_arguments(call.arguments).model_dump()

    def execute(self, call: ToolCall) -> Any:
        tool = self._lookup(call.name)
        arguments = tool.parse_arguments(call.arguments)
        logger.info("Executing tool %s (call_id=%s)", call.name, call.id)
        result = tool.execute(arguments)
        logger.debug("Tool %s returned %r", call.name, result)
        return result

    @staticmethod
    def serialise_result(result: Any) -> str:
        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False, default=str)


# ---------- Chat-completion tools ----------
class GetSourcesTool(Tool):
    name = "getSources"
    description = "Get supplementary materials, resources, and the schedule/calendar for the bootcamp"
    parameters = SourcesQuery

    def __init__(self, retrieval_factory: RetrievalFactory) -> None:
        self.retrieval_factory = retrieval_factory

    def execute(self, arguments: SourcesQuery) -> Any:
        return self.retrieval_factory().search_documents(arguments.query)


class GetCurrentDateTool(Tool):
    name = "getCurrentDate"
    description = "Get the current date and timezone in a structured format."

    def execute(self, arguments: NoArguments) -> Dict[str, str]:
        return get_current_date()


# ---------- Agent tools ----------
class GetLocationTool(Tool):
    name = "getLocation"
    description = "Get the current location of the user"

    def execute(self, arguments: NoArguments) -> str:
        location = get_location()
        return f"Current location: latitude {location['lat']}, longitude {location['lon']}"


class GetWeatherTool(Tool):
    name = "getWeather"
    description = "Get weather information for a specific location"
    parameters = WeatherArguments

    def execute(self, arguments: WeatherArguments) -> str:
        weather = get_weather(arguments.lat, arguments.lon, arguments.unit)
        return f"Weather: {weather['value']}°{arguments.unit}, {weather['description']}"


class SearchDocumentsTool(Tool):
    name = "searchDocuments"
    description = "Search through proprietary document sources for relevant information"
    parameters = DocumentQuery

    def __init__(self, retrieval_factory: RetrievalFactory) -> None:
        self.retrieval_factory = retrieval_factory

    def execute(self, arguments: DocumentQuery) -> str:
        documents = self.retrieval_factory().search_documents(arguments.query)
        rendered = ToolSet.serialise_result(documents)
        return f"Search completed for query: {arguments.query}. Documents retrieved: {rendered}."
