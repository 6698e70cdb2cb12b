"""Unit tests for the CLI rendering and startup paths."""

import argparse

import pytest
from rich.console import Console

from speechstream.cli import main, render
from speechstream.config import Language
from speechstream.controller import ControllerSnapshot


def render_text(snapshot: ControllerSnapshot) -> str:
    console = Console(width=80, record=True)
    console.print(render(snapshot, Language.PUNJABI))
    return console.export_text()


class TestRender:
    def test_listening(self):
        text = render_text(ControllerSnapshot(is_listening=True, level=0.2, recognized_text="ਸਤ ਸ੍ਰੀ ਅਕਾਲ"))
        assert "Listening (punjabi)" in text
        assert "ਸਤ" in text

    def test_full_meter(self):
        text = render_text(ControllerSnapshot(is_listening=True, level=2.0))
        assert "#" * 36 in text

    def test_empty_meter(self):
        text = render_text(ControllerSnapshot(is_listening=True, level=0.2))
        assert "#" not in text

    def test_stopped_with_error(self):
        text = render_text(ControllerSnapshot(error="connection lost"))
        assert "Stopped: connection lost" in text


class TestMain:
    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("SPEECHSTREAM_API_KEY", raising=False)
        args = argparse.Namespace(api_key=None, url=None, device=None, language="english")
        assert await main(args) == 2

    @pytest.mark.asyncio
    async def test_unknown_language(self, monkeypatch):
        monkeypatch.setenv("SPEECHSTREAM_API_KEY", "test-key")
        args = argparse.Namespace(api_key=None, url=None, device=None, language="klingon")
        assert await main(args) == 2
