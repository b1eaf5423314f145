"""Tests for pyproject.toml and package installation."""
from __future__ import annotations

import os
import subprocess
import sys
import tomllib
from pathlib import Path

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


class TestPackageInstallation:
    """Test that the package is properly installed."""

    def test_version_defined(self):
        import tts_gateway

        assert isinstance(tts_gateway.__version__, str)
        assert len(tts_gateway.__version__) > 0

    def test_version_matches_pyproject(self):
        import tts_gateway

        data = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))
        assert data["project"]["version"] == tts_gateway.__version__

    def test_core_modules_importable(self):
        """Core modules can be imported."""
        from tts_gateway import cli, main
        from tts_gateway.api import dependencies, openai_compat, routes, schemas
        from tts_gateway.core import config, errors, logging, metrics
        from tts_gateway.services import tts_service
        from tts_gateway.tts import chunker, client, credentials, pipeline

        for module in (cli, main, dependencies, openai_compat, routes, schemas, config, errors,
                       logging, metrics, tts_service, chunker, client, credentials, pipeline):
            assert module is not None


class TestCLIEntryPoint:

    def test_cli_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "tts_gateway.cli", "--help"],
            capture_output=True,
            text=True,
            cwd=PYPROJECT.parent,
            env={**os.environ, "PYTHONPATH": str(PYPROJECT.parent / "src")},
        )
        assert result.returncode == 0
        assert "tts-gateway CLI" in result.stdout


class TestPyprojectToml:

    def test_project_metadata(self):
        data = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))

        assert data["project"]["name"] == "tts-gateway"
        assert data["project"]["scripts"]["tts-gateway"] == "tts_gateway.cli:main"

    def test_pyproject_has_dependencies(self):
        data = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))

        deps = data["project"].get("dependencies", [])
        dep_names = [d.split(">=")[0].split("[")[0] for d in deps]
        for name in ("fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "python-jose", "prometheus-client"):
            assert name in dep_names
        assert "pytest" in " ".join(data["project"]["optional-dependencies"]["test"])
