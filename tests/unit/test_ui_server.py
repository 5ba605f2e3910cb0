"""Unit tests for the UI generation tool server."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

from photos_mcp.models import PhotosMCPError
from photos_mcp.ui_server import (
    SYSTEM_PROMPT,
    UIGenerator,
    create_server,
    run_stdio,
    template_name_from_uri,
)

GENERATED = "function PhotoGallery() {\n  return <div className=\"grid\" />;\n}"


@pytest.fixture
def genai_client():
    """Create a mock Gemini client."""
    client = MagicMock()
    client.models.generate_content.return_value = MagicMock(text=GENERATED)
    return client


@pytest.fixture
def generator(genai_client):
    return UIGenerator(genai_client, model="test-model")


def _prompt(genai_client):
    return genai_client.models.generate_content.call_args.kwargs["contents"]


def test_list_tools(generator):
    """Test the generation tools are advertised."""
    assert [tool.name for tool in generator.list_tools()] == [
        "generate_ui_component",
        "create_dashboard",
        "create_form",
        "validate_component",
        "render_template",
    ]


def test_generate_ui_component(generator, genai_client):
    """Test a component request returns the raw model text."""
    result = generator.call_tool(
        "generate_ui_component",
        {"description": "a photo gallery", "type": "custom", "data": {"photos": [1, 2]}},
    )

    assert result == {
        "success": True,
        "component": {
            "type": "custom",
            "code": GENERATED,
            "theme": "light",
            "description": "a photo gallery",
        },
    }
    kwargs = genai_client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["config"].system_instruction == SYSTEM_PROMPT
    assert "Generate a custom component: a photo gallery" in kwargs["contents"]
    assert '"photos"' in kwargs["contents"]


def test_generate_ui_component_dark_theme(generator, genai_client):
    """Test the dark theme adds styling guidance."""
    result = generator.call_tool(
        "generate_ui_component", {"description": "a card", "type": "card", "theme": "dark"}
    )

    assert result["component"]["theme"] == "dark"
    assert "dark theme" in _prompt(genai_client)


def test_generate_ui_component_missing_arguments(generator, genai_client):
    """Test missing arguments become an error payload."""
    result = generator.call_tool("generate_ui_component", {"type": "card"})

    assert result["success"] is False
    genai_client.models.generate_content.assert_not_called()


def test_create_dashboard_sample_metrics(generator, genai_client):
    """Test dashboards without metrics ask for sample metrics."""
    result = generator.call_tool("create_dashboard", {"title": "Library"})

    assert result["component"]["title"] == "Library"
    assert "sample metrics" in _prompt(genai_client)


def test_create_form(generator, genai_client):
    """Test forms include their fields in the prompt."""
    fields = [{"name": "email", "type": "email", "label": "Email", "required": True}]

    result = generator.call_tool("create_form", {"title": "Contact", "fields": fields})

    assert result["component"]["type"] == "form"
    assert '"email"' in _prompt(genai_client)


def test_model_error(generator, genai_client):
    """Test model failures become error payloads."""
    genai_client.models.generate_content.side_effect = RuntimeError("quota exceeded")

    result = generator.call_tool("create_dashboard", {"title": "Library"})

    assert result["success"] is False
    assert "quota exceeded" in result["error"]


def test_empty_model_output(generator, genai_client):
    """Test an empty response is reported as an error."""
    genai_client.models.generate_content.return_value = MagicMock(text=None)

    result = generator.call_tool("create_dashboard", {"title": "Library"})

    assert result["success"] is False


def test_unknown_tool(generator):
    """Test unknown tools return an error payload."""
    assert generator.call_tool("render", {})["success"] is False


def test_run_requires_api_key(monkeypatch):
    """Test the server refuses to start without an API key."""
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    with pytest.raises(PhotosMCPError):
        asyncio.run(run_stdio())


def test_validate_component_allowed(generator):
    """Test an allowed component type is valid."""
    result = generator.call_tool(
        "validate_component", {"templateName": "ai-form", "component": {"type": "input"}}
    )

    assert result == {"valid": True}


def test_validate_component_not_allowed(generator):
    """Test a component type outside the template is rejected."""
    result = generator.call_tool(
        "validate_component", {"templateName": "ai-form", "component": {"type": "chart"}}
    )

    assert result == {
        "valid": False,
        "errors": ["Component type 'chart' is not allowed in template 'ai-form'"],
    }


def test_validate_component_missing_type(generator):
    """Test a component without a type is rejected."""
    result = generator.call_tool(
        "validate_component", {"templateName": "ai-dashboard", "component": {}}
    )

    assert result == {"valid": False, "errors": ["Component type is required"]}


def test_validate_component_unknown_template(generator):
    """Test validation against an unknown template."""
    result = generator.call_tool(
        "validate_component", {"templateName": "ai-wizard", "component": {"type": "text"}}
    )

    assert result == {"valid": False, "errors": ["Template 'ai-wizard' not found"]}


def test_render_template(generator, genai_client):
    """Test a template renders to its root component with generated code."""
    result = generator.call_tool(
        "render_template", {"templateName": "ai-dashboard", "data": {"visits": 12}}
    )

    assert result == {
        "success": True,
        "component": {
            "type": "container",
            "props": {"className": "ai-rendered-dashboard", "generatedCode": GENERATED},
            "children": [],
        },
    }
    assert "Create a dashboard component using this data" in _prompt(genai_client)
    assert '"visits": 12' in _prompt(genai_client)


def test_render_form_template(generator):
    """Test the form template renders a form."""
    result = generator.call_tool("render_template", {"templateName": "ai-form"})

    assert result["component"]["type"] == "form"
    assert result["component"]["props"]["className"] == "ai-rendered-form"


def test_render_unknown_template(generator, genai_client):
    """Test unknown templates become error payloads."""
    result = generator.call_tool("render_template", {"templateName": "ai-wizard"})

    assert result["success"] is False
    assert "ai-wizard" in result["error"]
    genai_client.models.generate_content.assert_not_called()


def test_template_name_from_uri():
    """Test template URIs are mapped to names."""
    assert template_name_from_uri("ui-template://ai-form") == "ai-form"
    with pytest.raises(PhotosMCPError):
        template_name_from_uri("file:///etc/passwd")


def test_templates_over_session(generator):
    """Test templates are listed and read as resources."""
    async def browse():
        async with create_connected_server_and_client_session(create_server(generator)) as session:
            listed = await session.list_resources()
            read = await session.read_resource("ui-template://ai-form")
            return listed, read

    listed, read = asyncio.run(browse())

    assert [resource.name for resource in listed.resources] == [
        "ai-dashboard",
        "ai-form",
        "ai-component",
    ]
    template = json.loads(read.contents[0].text)
    assert template["schema"]["rootComponent"] == "form"
    assert "input" in template["schema"]["allowedComponents"]


def test_missing_argument_over_session(generator, genai_client):
    """Test a client session receives the JSON error payload."""
    async def call():
        async with create_connected_server_and_client_session(create_server(generator)) as session:
            return await session.call_tool("create_form", {"title": "Contact"})

    result = asyncio.run(call())

    payload = json.loads(result.content[0].text)
    assert payload["success"] is False
    genai_client.models.generate_content.assert_not_called()
