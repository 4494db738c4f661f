from __future__ import annotations

import json
import re
import subprocess
import time
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings, get_settings
from app.services import ffmpeg_service

_PART_RE = re.compile(r"_part(\d+)\.[^.]+$")


class FakeMedia:
    """Stands in for the ffprobe/ffmpeg binaries behind ``subprocess.run``."""

    def __init__(self) -> None:
        self.duration: object = "30.000000"
        self.probe_returncode = 0
        self.probe_stdout: str | None = None
        self.failing_parts: set[int] = set()
        self.empty_parts: set[int] = set()
        self.missing_parts: set[int] = set()
        self.timeout_parts: set[int] = set()
        self.delays: dict[int, float] = {}
        self.errors: dict[int, Exception] = {}
        self.payload = b"ID3" + b"\x00" * 61
        self.calls: list[list[str]] = []

    @property
    def extract_calls(self) -> list[list[str]]:
        return [cmd for cmd in self.calls if "-show_format" not in cmd and "-version" not in cmd]

    def _probe(self, cmd):
        if self.probe_returncode:
            raise subprocess.CalledProcessError(self.probe_returncode, cmd, output="", stderr="Invalid data found")
        if self.probe_stdout is not None:
            return subprocess.CompletedProcess(cmd, 0, stdout=self.probe_stdout, stderr="")
        fmt = {"format_name": "mp3"}
        if self.duration is not None:
            fmt["duration"] = self.duration
        return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps({"format": fmt, "streams": []}), stderr="")

    def _extract(self, cmd, timeout):
        output_path = Path(cmd[-1])
        part = int(_PART_RE.search(output_path.name).group(1))
        time.sleep(self.delays.get(part, 0))

        if part in self.errors:
            raise self.errors[part]

        if part in self.timeout_parts:
            output_path.write_bytes(b"partial")
            raise subprocess.TimeoutExpired(cmd, timeout)
        if part in self.failing_parts:
            output_path.write_bytes(b"partial")
            raise subprocess.CalledProcessError(1, cmd, output="", stderr="Conversion failed!")
        if part in self.missing_parts:
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
        output_path.write_bytes(b"" if part in self.empty_parts else self.payload)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def run(self, cmd, *args, timeout=None, **kwargs):
        self.calls.append(list(cmd))
        if "-version" in cmd:
            return subprocess.CompletedProcess(cmd, 0, stdout="ffmpeg version test", stderr="")
        if "-show_format" in cmd:
            return self._probe(cmd)
        return self._extract(cmd, timeout)


@pytest.fixture()
def fake_media(monkeypatch: pytest.MonkeyPatch) -> FakeMedia:
    fake = FakeMedia()
    monkeypatch.setattr(ffmpeg_service.subprocess, "run", fake.run)
    return fake


@pytest.fixture()
def settings_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Settings]:
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("DOWNLOAD_DIR", str(tmp_path / "downloads"))
    monkeypatch.setenv("SESSION_RETENTION_HOURS", "0")
    monkeypatch.setenv("KEEP_UPLOADS", "false")
    get_settings.cache_clear()
    settings = get_settings()
    settings.ensure_directories()
    yield settings
    get_settings.cache_clear()


@pytest.fixture()
def client(settings_env: Settings, fake_media: FakeMedia) -> Iterator[TestClient]:
    from app.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client
