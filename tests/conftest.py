"""Shared test fixtures."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

import pytest

from imagelink.platforms import LinuxPlatform
from imagelink.runtime import RuntimeDistribution


class FakeRunner:
    """Stand-in for ``subprocess.run`` that records argv and fakes outputs."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str]] = []
        self.returncode = 0
        self.stdout = ""
        self.stderr = ""
        self.raises: OSError | None = None
        self.create_outputs = True

    def __call__(self, argv: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(argv))
        env = kwargs.get("env")
        self.envs.append(dict(env) if isinstance(env, dict) else {})
        if self.raises is not None:
            raise self.raises
        if self.returncode == 0 and self.create_outputs:
            for flag in ("-o", "--output-o", "--output-bc"):
                if flag in argv:
                    output = Path(argv[argv.index(flag) + 1])
                    output.parent.mkdir(parents=True, exist_ok=True)
                    output.write_bytes(b"\x7fELF" + " ".join(argv).encode("utf-8"))
        return subprocess.CompletedProcess(
            argv, self.returncode, stdout=self.stdout, stderr=self.stderr
        )

    def commands(self, tool: str) -> list[list[str]]:
        return [call for call in self.calls if call and call[0] == tool]


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch) -> FakeRunner:
    runner = FakeRunner()
    monkeypatch.setattr("imagelink.process.subprocess.run", runner)
    return runner


@pytest.fixture
def linux() -> LinuxPlatform:
    return LinuxPlatform()


@pytest.fixture
def runtime(tmp_path: Path) -> RuntimeDistribution:
    """A minimal runtime install tree with ELF-style library names."""
    root = tmp_path / "runtime"
    libdir = root / "lib"
    private = libdir / "julia"
    private.mkdir(parents=True)
    (root / "bin").mkdir()
    (root / "bin" / "julia").write_text("#!/bin/sh\n", encoding="utf-8")
    (root / "include" / "julia").mkdir(parents=True)
    (root / "include" / "julia" / "julia.h").write_text("/* header */\n", encoding="utf-8")

    (libdir / "libjulia.so.1.12.0").write_bytes(b"\x7fELF libjulia")
    os.symlink("libjulia.so.1.12.0", libdir / "libjulia.so.1")
    os.symlink("libjulia.so.1", libdir / "libjulia.so")
    (private / "libjulia-internal.so.1").write_bytes(b"\x7fELF libjulia-internal")
    (private / "libopenlibm.so").write_bytes(b"\x7fELF libopenlibm")
    (private / "sys.ji").write_bytes(b"not a shared library")
    return RuntimeDistribution(root=root)


@pytest.fixture
def cc_env() -> dict[str, str]:
    """Environment pinning the compiler so no PATH search happens."""
    return {"IMAGELINK_CC": "cc", "PATH": "/usr/bin"}
