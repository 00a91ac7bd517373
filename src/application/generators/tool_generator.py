"""Tool definition generation from a natural-language description."""

import json
import logging
import re
from typing import Any, Callable, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from application.clients import ChatClient, ConfigError, ProviderError
from domain.models import ApiConfig, Message, Tool, generate_id

logger = logging.getLogger(__name__)

JSON_BLOCK_PATTERN = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = """You are an expert at creating OpenAI function calling tools. Your task is to generate a tool definition based on the user's description.

You must respond with a valid JSON object containing exactly these fields:
- name: A snake_case function name (e.g., "get_weather", "search_web")
- description: A clear, concise description of what the tool does
- schema: A complete OpenAI function calling schema

The schema must follow this exact format:
{
  "type": "function",
  "function": {
    "name": "function_name",
    "description": "Function description",
    "parameters": {
      "type": "object",
      "properties": {
        "parameter_name": {
          "type": "string|number|boolean|array|object",
          "description": "Parameter description",
          "enum": ["option1", "option2"] // only if applicable
        }
      },
      "required": ["required_parameter_names"]
    }
  }
}

Important guidelines:
1. Use descriptive parameter names and descriptions
2. Include appropriate data types (string, number, boolean, array, object)
3. Add enum constraints where applicable
4. Mark required parameters in the "required" array
5. The function name in the schema must match the top-level name field
6. Keep all descriptions clear and concise, written in English
7. Consider edge cases and validation

Respond ONLY with the JSON object, no additional text or formatting."""


class ToolGenerationError(Exception):
    """Raised when the model output is not a usable tool definition."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = "tool_generation_failed"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "error_code": self.error_code, "details": self.details}


def parse_generated_json(content: str) -> dict[str, Any]:
    """Parse the model output, falling back to the first {...} block in it."""
    try:
        data = json.loads(content.strip())
    except json.JSONDecodeError:
        match = JSON_BLOCK_PATTERN.search(content)
        if match is None:
            raise ToolGenerationError("Failed to parse generated tool JSON")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ToolGenerationError("Failed to parse generated tool JSON", details={"error": str(e)})
    if not isinstance(data, dict):
        raise ToolGenerationError("Generated tool must be an object")
    return data


def validate_generated_tool(data: dict[str, Any]) -> None:
    """Check the generated definition shape.

    Raises:
        ToolGenerationError: On the first violation found
    """
    if not data.get("name") or not isinstance(data["name"], str):
        raise ToolGenerationError("Generated tool must have a valid name")
    if not data.get("description") or not isinstance(data["description"], str):
        raise ToolGenerationError("Generated tool must have a valid description")

    schema = data.get("schema")
    if not schema or not isinstance(schema, dict):
        raise ToolGenerationError("Generated tool must have a valid schema")
    if schema.get("type") != "function":
        raise ToolGenerationError('Schema type must be "function"')

    function = schema.get("function")
    if not function or not isinstance(function, dict):
        raise ToolGenerationError("Schema must have a function object")
    if not function.get("name") or not function.get("description") or not function.get("parameters"):
        raise ToolGenerationError("Function schema must have name, description, and parameters")

    parameters = function["parameters"]
    if not isinstance(parameters, dict) or parameters.get("type") != "object":
        raise ToolGenerationError('Function parameters type must be "object"')

    try:
        Draft7Validator.check_schema(parameters)
    except SchemaError as e:
        raise ToolGenerationError(f"Function parameters are not a valid JSON Schema: {e.message}", details={"path": list(e.path)})


class ToolGenerator:
    """Generates a Tool (schema only, no HTTP request) from a description."""

    def __init__(self, client_factory: Callable[[ApiConfig, Optional[str]], ChatClient]) -> None:
        self._client_factory = client_factory

    async def generate(self, description: str, config: ApiConfig, provider_name: Optional[str] = None) -> Tool:
        """Generate a new tool.

        Raises:
            ConfigError: If the configuration is unusable
            ProviderError: If the model request fails
            ToolGenerationError: If the output is not a valid tool definition
        """
        if not description.strip():
            raise ConfigError("Tool description is required", field_name="description")

        messages = [Message.system(SYSTEM_PROMPT), Message.user(description)]
        async with self._client_factory(config.with_overrides(temperature=0.3, max_tokens=2000), provider_name) as client:
            client.validate_config()
            try:
                content = await client.chat_completion(messages)
            except ProviderError as e:
                logger.error(f"Tool generation request failed: {e.message}")
                raise

        if not content or not content.strip():
            raise ToolGenerationError("No content received from API")

        data = parse_generated_json(content)
        validate_generated_tool(data)

        schema = json.loads(json.dumps(data["schema"]))
        schema["function"]["name"] = data["name"]
        tool = Tool(id=generate_id(), name=data["name"], description=data["description"], schema=schema)
        logger.info(f"🛠️ Generated tool '{tool.name}' with {len(schema['function']['parameters'].get('properties', {}))} parameter(s)")
        return tool
