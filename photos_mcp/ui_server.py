"""MCP tool server generating React UI components with Gemini."""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import anyio
import anyio.to_thread
from google import genai
from google.genai import types
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from photos_mcp import __version__
from photos_mcp.models import PhotosMCPError

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-ui-ai-server"
DEFAULT_MODEL = "gemini-2.5-flash"

SYSTEM_PROMPT = """You are an expert React developer who writes Tailwind CSS UI components.
Generate a ready-to-use React component for the user's request.

Rules:
1. Return ONLY the component source, without explanations or markdown fences.
2. Write one plain function component: `function MyComponent() { ... }`.
3. Do not use import or export statements; React is available globally.
4. Use React.useState, React.useEffect and React.useRef, never destructured hooks.
5. Style with Tailwind CSS classes only, with responsive, accessible markup.
6. Use realistic placeholder data when no data is supplied.

The code must run as-is in a browser where React and ReactDOM are already loaded."""

THEMES = ["light", "dark", "auto"]

TOOLS: List[Dict[str, Any]] = [
    {
        "name": "generate_ui_component",
        "description": "Generate a React UI component using AI based on user specifications",
        "inputSchema": {
            "type": "object",
            "properties": {
                "description": {
                    "type": "string",
                    "description": "Description of the UI component to generate",
                },
                "type": {
                    "type": "string",
                    "enum": ["dashboard", "form", "card", "table", "chart", "button", "input", "custom"],
                    "description": "Type of component to generate",
                },
                "theme": {"type": "string", "enum": THEMES, "default": "light"},
                "data": {"type": "object", "description": "Optional data to populate the component with"},
            },
            "required": ["description", "type"],
        },
    },
    {
        "name": "create_dashboard",
        "description": "Create an AI-generated interactive dashboard with metrics and visualizations",
        "inputSchema": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Dashboard title"},
                "metrics": {
                    "type": "array",
                    "description": "Metrics to display",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "value": {"type": "string"},
                            "change": {"type": "string"},
                            "icon": {"type": "string"},
                        },
                    },
                },
                "theme": {"type": "string", "enum": THEMES, "default": "light"},
            },
            "required": ["title"],
        },
    },
    {
        "name": "create_form",
        "description": "Create an AI-generated dynamic form with validation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Form title"},
                "fields": {
                    "type": "array",
                    "description": "Form fields",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "type": {"type": "string"},
                            "label": {"type": "string"},
                            "required": {"type": "boolean"},
                            "placeholder": {"type": "string"},
                            "options": {"type": "array"},
                        },
                    },
                },
                "theme": {"type": "string", "enum": THEMES, "default": "light"},
            },
            "required": ["title", "fields"],
        },
    },
    {
        "name": "validate_component",
        "description": "Check a component's type against a UI template's allowed components",
        "inputSchema": {
            "type": "object",
            "properties": {
                "templateName": {"type": "string", "description": "Template to validate against"},
                "component": {
                    "type": "object",
                    "description": "Component with at least a type",
                    "properties": {"type": {"type": "string"}},
                },
            },
            "required": ["templateName", "component"],
        },
    },
    {
        "name": "render_template",
        "description": "Render an AI-generated component from a UI template and data",
        "inputSchema": {
            "type": "object",
            "properties": {
                "templateName": {
                    "type": "string",
                    "enum": ["ai-dashboard", "ai-form", "ai-component"],
                    "description": "Template to render",
                },
                "data": {"type": "object", "description": "Data the component should display"},
            },
            "required": ["templateName"],
        },
    },
]


TEMPLATE_URI_PREFIX = "ui-template://"

TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "ai-dashboard",
        "description": "AI-generated interactive dashboard with metrics, charts, and data tables",
        "schema": {
            "rootComponent": "container",
            "allowedComponents": ["container", "text", "card", "chart", "table", "progress", "button"],
            "componentSchemas": {
                "container": {
                    "properties": {
                        "layout": {"type": "string", "enum": ["grid", "flex", "stack"]},
                        "columns": {"type": "number", "minimum": 1, "maximum": 12},
                    },
                },
                "card": {
                    "properties": {
                        "title": {"type": "string"},
                        "subtitle": {"type": "string"},
                        "variant": {"type": "string", "enum": ["default", "outlined", "elevated"]},
                    },
                },
                "chart": {
                    "properties": {
                        "type": {"type": "string", "enum": ["line", "bar", "pie", "area", "doughnut"]},
                        "data": {"type": "array"},
                        "xAxis": {"type": "string"},
                        "yAxis": {"type": "string"},
                    },
                    "required": ["type", "data"],
                },
            },
            "maxDepth": 5,
            "allowCustomComponents": True,
            "styling": {"allowInlineStyles": True, "allowArbitraryClasses": True},
        },
    },
    {
        "name": "ai-form",
        "description": "AI-generated dynamic form with validation and modern styling",
        "schema": {
            "rootComponent": "form",
            "allowedComponents": ["form", "input", "select", "checkbox", "radio", "textarea", "button", "text"],
            "componentSchemas": {
                "form": {
                    "properties": {
                        "action": {"type": "string"},
                        "method": {"type": "string", "enum": ["GET", "POST"]},
                        "validation": {"type": "object"},
                    },
                },
                "input": {
                    "properties": {
                        "type": {
                            "type": "string",
                            "enum": ["text", "email", "password", "number", "date", "tel", "url"],
                        },
                        "placeholder": {"type": "string"},
                        "required": {"type": "boolean"},
                        "validation": {"type": "object"},
                    },
                    "required": ["type"],
                },
            },
            "maxDepth": 3,
            "allowCustomComponents": True,
        },
    },
    {
        "name": "ai-component",
        "description": "AI-generated custom component based on user specifications",
        "schema": {
            "rootComponent": "container",
            "allowedComponents": [
                "container", "text", "button", "input", "card", "table", "chart",
                "form", "select", "checkbox", "radio", "textarea", "progress",
            ],
            "componentSchemas": {},
            "maxDepth": 10,
            "allowCustomComponents": True,
            "styling": {"allowInlineStyles": True, "allowArbitraryClasses": True},
        },
    },
]

# Prompt subject and CSS class of the component each template renders.
_RENDER_TARGETS = {
    "ai-dashboard": ("dashboard", "ai-rendered-dashboard"),
    "ai-form": ("form", "ai-rendered-form"),
    "ai-component": ("custom", "ai-rendered-component"),
}


class UIGenerator:
    """Turns component requests into prompts and returns the model's code."""

    def __init__(self, client: genai.Client, model: str = DEFAULT_MODEL):
        self.client = client
        self.model = model

    def generate(self, prompt: str) -> str:
        """Send a prompt to the model and return the raw text output."""
        logger.info("Generating UI with %s (%d prompt chars)", self.model, len(prompt))
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(system_instruction=SYSTEM_PROMPT),
        )
        if not response.text:
            raise PhotosMCPError("Model returned no text")
        return response.text

    def list_tools(self) -> List[Tool]:
        return [Tool(**tool) for tool in TOOLS]

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a generation tool; failures become ``success: False`` payloads."""
        handlers = {
            "generate_ui_component": self.generate_ui_component,
            "create_dashboard": self.create_dashboard,
            "create_form": self.create_form,
            "validate_component": self.validate_component,
            "render_template": self.render_template,
        }
        handler = handlers.get(name)
        if handler is None:
            return {"success": False, "error": f"Unknown tool: {name}"}

        try:
            return handler(arguments or {})
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return {"success": False, "error": f"Error generating UI component: {e}"}

    @staticmethod
    def _component(kind: str, code: str, theme: str, **props: Any) -> Dict[str, Any]:
        component = {"type": kind, "code": code, "theme": theme}
        component.update(props)
        return {"success": True, "component": component}

    def generate_ui_component(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        description = arguments.get("description")
        kind = arguments.get("type")
        if not description or not kind:
            raise PhotosMCPError("description and type are required")
        theme = arguments.get("theme", "light")

        prompt = f"Generate a {kind} component: {description}"
        if arguments.get("data"):
            prompt += f"\n\nUse this data in the component: {json.dumps(arguments['data'], indent=2)}"
        if theme == "dark":
            prompt += "\n\nUse dark theme classes (dark:bg-gray-800, dark:text-white, etc.)"

        return self._component(kind, self.generate(prompt), theme, description=description)

    def create_dashboard(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        title = arguments.get("title")
        if not title:
            raise PhotosMCPError("title is required")
        metrics = arguments.get("metrics") or []
        theme = arguments.get("theme", "light")

        prompt = f'Create a modern dashboard component with the title "{title}".'
        if metrics:
            prompt += f"\n\nInclude these metrics: {json.dumps(metrics, indent=2)}"
        else:
            prompt += "\n\nInclude sample metrics like revenue, users, orders, and growth rate."
        prompt += ("\n\nThe dashboard should have a header with the title, metric cards"
                   " in a grid layout and charts or visualizations.")
        if theme == "dark":
            prompt += "\n\nUse dark theme styling."

        return self._component("dashboard", self.generate(prompt), theme, title=title)

    def create_form(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        title = arguments.get("title")
        fields = arguments.get("fields")
        if not title or not fields:
            raise PhotosMCPError("title and fields are required")
        theme = arguments.get("theme", "light")

        prompt = (f'Create a modern form component with the title "{title}".'
                  f"\n\nInclude these form fields: {json.dumps(fields, indent=2)}"
                  "\n\nThe form should have validation styling, a submit button,"
                  " a responsive layout and accessible labels.")
        if theme == "dark":
            prompt += "\n\nUse dark theme styling."

        return self._component("form", self.generate(prompt), theme, title=title)

    def get_template(self, name: str) -> Dict[str, Any]:
        """Return a UI template by name.

        Raises:
            PhotosMCPError: If no template has that name
        """
        for template in TEMPLATES:
            if template["name"] == name:
                return template
        raise PhotosMCPError(f"Template '{name}' not found")

    def validate_component(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        template_name = arguments.get("templateName")
        component = arguments.get("component") or {}
        try:
            template = self.get_template(template_name)
        except PhotosMCPError as e:
            return {"valid": False, "errors": [str(e)]}

        errors = []
        kind = component.get("type") if isinstance(component, dict) else None
        if not kind:
            errors.append("Component type is required")
        elif kind not in template["schema"]["allowedComponents"]:
            errors.append(f"Component type '{kind}' is not allowed in template '{template_name}'")

        if errors:
            return {"valid": False, "errors": errors}
        return {"valid": True}

    def render_template(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        template = self.get_template(arguments.get("templateName"))
        subject, class_name = _RENDER_TARGETS[template["name"]]
        data = arguments.get("data") or {}

        prompt = f"Create a {subject} component using this data: {json.dumps(data, indent=2)}"
        return {
            "success": True,
            "component": {
                "type": template["schema"]["rootComponent"],
                "props": {"className": class_name, "generatedCode": self.generate(prompt)},
                "children": [],
            },
        }


def template_name_from_uri(uri: Any) -> str:
    """Return the template name of a ``ui-template://<name>`` URI."""
    text = str(uri)
    if not text.startswith(TEMPLATE_URI_PREFIX):
        raise PhotosMCPError(f"Unknown resource: {text}")
    return text[len(TEMPLATE_URI_PREFIX):].strip("/")


def create_server(generator: UIGenerator) -> Server:
    """Wire a UI generator into an MCP server.

    Templates are published as JSON resources, tools as usual.
    """
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        return generator.list_tools()

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        payload = await anyio.to_thread.run_sync(generator.call_tool, name, arguments)
        return [TextContent(type="text", text=json.dumps(payload, indent=2))]

    @server.list_resources()
    async def list_resources() -> List[Resource]:
        return [
            Resource(
                uri=f"{TEMPLATE_URI_PREFIX}{template['name']}",
                name=template["name"],
                description=template["description"],
                mimeType="application/json",
            )
            for template in TEMPLATES
        ]

    @server.read_resource()
    async def read_resource(uri: AnyUrl) -> List[ReadResourceContents]:
        template = generator.get_template(template_name_from_uri(uri))
        return [ReadResourceContents(content=json.dumps(template, indent=2), mime_type="application/json")]

    return server


async def run_stdio(api_key: Optional[str] = None, model: Optional[str] = None) -> None:
    """Serve the UI generation tools over stdio.

    Raises:
        PhotosMCPError: If no Google API key is configured
    """
    api_key = api_key or os.environ.get("GOOGLE_API_KEY")
    if not api_key:
        raise PhotosMCPError("GOOGLE_API_KEY environment variable is required")

    generator = UIGenerator(genai.Client(api_key=api_key), model or DEFAULT_MODEL)
    server = create_server(generator)
    async with stdio_server() as (read_stream, write_stream):
        logger.info("UI generation MCP server running on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
