"""Test configuration for pytest."""

import json
import sys
from pathlib import Path

import pytest

# Add the project root directory to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def credentials_data():
    """Create client secret file contents."""
    return {
        "installed": {
            "client_id": "test_client_id",
            "project_id": "test-project",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "client_secret": "test_client_secret",
            "redirect_uris": ["http://localhost"],
        }
    }


@pytest.fixture
def credentials_file(tmp_path: Path, credentials_data) -> Path:
    """Write a client secret file to a temporary directory."""
    path = tmp_path / "client_secret.json"
    path.write_text(json.dumps(credentials_data), encoding="utf-8")
    return path


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    """Path of a token file that does not exist yet."""
    return tmp_path / "tokens.json"
