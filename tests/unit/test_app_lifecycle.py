"""Unit tests for OxKubeApp startup failure and shutdown paths."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from oxkube.app import OxKubeApp, _ComponentError
from oxkube.errors import ModelBootstrapError
from oxkube.models.config import OnixConfig, OxKubeConfig


class TestOxKubeApp:
    async def test_stop_before_start_is_a_no_op(self) -> None:
        app = OxKubeApp()

        await app.stop()

        assert app.running is False

    async def test_invalid_environment_fails_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OXKU_LOG_LEVEL", "chatty")
        app = OxKubeApp()

        with pytest.raises(_ComponentError) as excinfo:
            await app.start()

        assert excinfo.value.component == "config"

    async def test_unknown_auth_mode_fails_auth(self) -> None:
        app = OxKubeApp(OxKubeConfig(onix=OnixConfig(auth_mode="kerberos")))

        with pytest.raises(_ComponentError) as excinfo:
            await app.start()
        await app.stop()

        assert excinfo.value.component == "auth"
        assert app.running is False

    async def test_model_bootstrap_failure_is_fatal(self) -> None:
        app = OxKubeApp(OxKubeConfig(onix=OnixConfig(auth_mode="none")))
        failing = AsyncMock(side_effect=ModelBootstrapError("cmdb unreachable"))

        with patch("oxkube.sync.model.ensure_model", failing), pytest.raises(_ComponentError) as excinfo:
            await app.start()
        await app.stop()

        assert excinfo.value.component == "model"
        assert isinstance(excinfo.value.cause, ModelBootstrapError)
        assert app.running is False
