"""
Tests for the telemetry source base class and the host sources.
"""

import asyncio
from types import SimpleNamespace

import psutil

from nvidia_monitor.config.schema import Settings
from nvidia_monitor.sources import (
    CPUTelemetrySource,
    GPUTelemetrySource,
    MemoryTelemetrySource,
    TelemetrySource,
    create_default_sources,
)


class ScriptedSource(TelemetrySource):
    """Source returning a fixed sequence of displays."""

    def __init__(self, displays: list[str], max_width: int = 30, settings: Settings | None = None):
        super().__init__(settings or Settings(), key="scripted", max_width=max_width)
        self.displays = list(displays)
        self.calls = 0

    async def sample(self) -> str:
        self.calls += 1
        return self.displays.pop(0)


def render_all(source: TelemetrySource, cycles: int) -> list[str | None]:
    async def run() -> list[str | None]:
        return [await source.render_display() for _ in range(cycles)]

    return asyncio.run(run())


def test_width_ratchet_applies_one_cycle_late() -> None:
    """Test that a shorter sample tightens the width one cycle later."""
    source = ScriptedSource(["a" * 40, "b" * 30, "c" * 30], max_width=40)

    first, second, third = render_all(source, 3)

    assert first == "a" * 40
    assert second == "b" * 30 + " " * 10
    assert third == "c" * 30
    assert source.min_width == 30


def test_width_ratchet_never_grows_or_truncates() -> None:
    """Test that the width only shrinks and long samples are not cut."""
    source = ScriptedSource(["x" * 10, "y" * 25], max_width=30)

    first, second = render_all(source, 2)

    assert first == "x" * 10 + " " * 20
    assert second == "y" * 25
    assert source.min_width == 10


def test_hidden_source_renders_nothing() -> None:
    """Test that a hidden source is not sampled."""
    source = ScriptedSource(["never"], settings=Settings({"show.scripted": False}))

    assert render_all(source, 1) == [None]
    assert source.calls == 0
    assert source.min_width == 30


def test_visibility_defaults() -> None:
    """Test visibility when no show key is set."""
    source = ScriptedSource(["shown"], max_width=0)

    assert source.is_visible() is True
    assert render_all(source, 1) == ["shown"]


def test_visibility_follows_settings_swap() -> None:
    """Test that visibility follows a replaced settings snapshot."""
    source = ScriptedSource([], settings=Settings({"show.scripted": True}))
    assert source.is_visible()

    source.settings = Settings({"show.scripted": False})
    assert not source.is_visible()


def test_default_sources() -> None:
    """Test the default source order and visibility."""
    sources = create_default_sources(Settings())

    assert [source.key for source in sources] == ["gpu", "cpu", "memory"]
    assert isinstance(sources[0], GPUTelemetrySource)
    assert [source.is_visible() for source in sources] == [True, False, False]


def test_cpu_source(monkeypatch) -> None:
    """Test the CPU display."""
    monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None: 12.4)
    source = CPUTelemetrySource(Settings({"show.cpu": True}))

    assert asyncio.run(source.sample()) == "CPU:  12%"


def test_memory_source_units(monkeypatch) -> None:
    """Test the RAM display in both memory units."""
    mib = 1024 * 1024
    monkeypatch.setattr(
        psutil, "virtual_memory", lambda: SimpleNamespace(used=3072 * mib, total=16384 * mib)
    )

    gib = MemoryTelemetrySource(Settings())
    assert asyncio.run(gib.sample()) == "RAM:  3/16GiB"

    in_mib = MemoryTelemetrySource(Settings({"memory_unit": "MiB"}))
    assert asyncio.run(in_mib.sample()) == "RAM: 3072/16384MiB"


def test_memory_source_error(monkeypatch) -> None:
    """Test the RAM error display."""
    def fail():
        raise psutil.AccessDenied()

    monkeypatch.setattr(psutil, "virtual_memory", fail)

    assert asyncio.run(MemoryTelemetrySource(Settings()).sample()) == "memory error"
