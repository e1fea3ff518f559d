"""Shared fixtures: a checked-in sample app and a throwaway project builder."""
from pathlib import Path

import pytest

import schema_janitor.config as config_module


FIXTURES_DIR = Path(__file__).parent / 'fixtures'
SAMPLE_APP = FIXTURES_DIR / 'fullstack_app'

ENV_VARS = (
    'SCHEMA_JANITOR_SERVER_PATH',
    'SCHEMA_JANITOR_CLIENT_PATH',
    'SCHEMA_JANITOR_SCHEMA_PATH',
    'SCHEMA_JANITOR_MODE',
    'SCHEMA_JANITOR_REPORT_PATH',
    'SCHEMA_JANITOR_DB_HANDLES',
)


@pytest.fixture
def sample_app():
    """Root of the checked-in sample app (server/ and client/)."""
    return SAMPLE_APP


@pytest.fixture
def clean_env(monkeypatch):
    """Clear Schema Janitor environment variables and the shared Config.

    Each variable is set before deletion so monkeypatch also removes values
    that load_dotenv() writes during the test.
    """
    for name in ENV_VARS:
        monkeypatch.setenv(name, '')
        monkeypatch.delenv(name)
    monkeypatch.setattr(config_module, '_config', None)
    return monkeypatch


@pytest.fixture
def make_project(tmp_path):
    """Build a server/client tree from {relative path: content}.

    Paths starting with 'client/' land in the client root, everything else
    in the server root. Returns (server_root, client_root, files).
    """
    def _make(sources):
        server_root = tmp_path / 'server'
        client_root = tmp_path / 'client'
        server_root.mkdir(exist_ok=True)
        client_root.mkdir(exist_ok=True)

        files = []
        for relative, content in sources.items():
            path = tmp_path / relative if relative.startswith('client/') else server_root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding='utf-8')
            files.append(path)
        return server_root, client_root, files

    return _make
