"""
Tests for the nvidia-smi GPU telemetry source.
"""

import asyncio
import sys

import pytest

from nvidia_monitor.config.schema import MemoryUnit, Settings, TemperatureUnit
from nvidia_monitor.sources.base import MalformedTelemetryError, SamplingError
from nvidia_monitor.sources.gpu import (
    ERROR_DISPLAY,
    NO_DEVICES_DISPLAY,
    DeviceSample,
    GPUTelemetrySource,
    format_device,
    format_memory,
    parse_devices,
    parse_report,
    round_half_up,
    strip_unit,
)


class ReportGPUSource(GPUTelemetrySource):
    """GPU source fed with a canned nvidia-smi report."""

    def __init__(self, settings: Settings, output: str | Exception):
        super().__init__(settings)
        self.output = output

    async def _run_command(self) -> str:
        if isinstance(self.output, Exception):
            raise self.output
        return self.output


def sample(settings: Settings, output: str | Exception) -> str:
    return asyncio.run(ReportGPUSource(settings, output).sample())


def test_single_gpu_report_renders_one_token(nvidia_smi_report, gpu_xml) -> None:
    """Test the token layout for a single GPU."""
    display = sample(Settings(), nvidia_smi_report(gpu_xml()))

    assert display == "⚡️G0:   7% ・  2/24GiB ・  30°C/ 83°C"


def test_single_gpu_is_collapsed_by_the_xml_tree(nvidia_smi_report, gpu_xml) -> None:
    """Test that a lone <gpu> record is still treated as a list of one."""
    report = parse_report(nvidia_smi_report(gpu_xml()))

    # The record tree keeps a lone <gpu> as a mapping, not a list
    assert isinstance(report["nvidia_smi_log"]["gpu"], dict)
    assert len(parse_devices(nvidia_smi_report(gpu_xml()))) == 1


def test_multiple_gpus_are_tab_separated(nvidia_smi_report, gpu_xml) -> None:
    """Test that one token per GPU is rendered, joined by tabs."""
    report = nvidia_smi_report(
        gpu_xml(util="45 %", gpu_id="00000000:01:00.0"),
        gpu_xml(util="100 %", used="12288 MiB", temp="71 C", gpu_id="00000000:02:00.0"),
    )

    tokens = sample(Settings(), report).split("\t")

    assert tokens == [
        "⚡️G0:  45% ・  2/24GiB ・  30°C/ 83°C",
        "⚡️G1: 100% ・ 12/24GiB ・  71°C/ 83°C",
    ]


@pytest.mark.parametrize("util, expected", [("0 %", "  0"), ("7 %", "  7"), ("45 %", " 45"), ("100 %", "100")])
def test_utilization_is_three_characters_wide(nvidia_smi_report, gpu_xml, util, expected) -> None:
    """Test utilization padding."""
    display = sample(Settings(), nvidia_smi_report(gpu_xml(util=util)))

    assert display.startswith(f"⚡️G0: {expected}% ・")


def test_memory_in_gib_and_mib(nvidia_smi_report, gpu_xml) -> None:
    """Test memory conversion and padding for both units."""
    report = nvidia_smi_report(gpu_xml(used="2048 MiB", total="8192 MiB"))

    gib = sample(Settings({"memory_unit": "GiB"}), report)
    mib = sample(Settings({"memory_unit": "MiB"}), report)

    assert "・  2/ 8GiB ・" in gib
    assert "・ 2048/8192MiB ・" in mib


def test_small_mib_values_are_padded_to_four(nvidia_smi_report, gpu_xml) -> None:
    """Test that MiB values are padded to four characters."""
    display = sample(Settings({"memory_unit": "MiB"}), nvidia_smi_report(gpu_xml(used="5 MiB")))

    assert "・    5/24576MiB ・" in display


def test_fahrenheit_conversion(nvidia_smi_report, gpu_xml) -> None:
    """Test Celsius to Fahrenheit conversion with half-up rounding."""
    display = sample(Settings({"temperature_unit": "°F"}), nvidia_smi_report(gpu_xml(temp="30 C", target="83 C")))

    # 83 C = 181.4 F
    assert display.endswith("・  86°F/181°F")


def test_invalid_units_fall_back_to_defaults(nvidia_smi_report, gpu_xml) -> None:
    """Test that unknown unit settings render as GiB and Celsius."""
    settings = Settings({"temperature_unit": "kelvin", "memory_unit": "bytes"})

    assert sample(settings, nvidia_smi_report(gpu_xml())) == "⚡️G0:   7% ・  2/24GiB ・  30°C/ 83°C"


def test_device_count_mismatch_is_an_error(nvidia_smi_report, gpu_xml) -> None:
    """Test that attached_gpus must match the number of GPU records."""
    report = nvidia_smi_report(gpu_xml(), attached=2)

    with pytest.raises(MalformedTelemetryError):
        parse_devices(report)
    assert sample(Settings(), report) == ERROR_DISPLAY


def test_missing_field_is_an_error(nvidia_smi_report) -> None:
    """Test that a GPU record without memory or temperature is rejected."""
    gpu = "<gpu><utilization><gpu_util>5 %</gpu_util></utilization></gpu>"

    assert sample(Settings(), nvidia_smi_report(gpu)) == ERROR_DISPLAY


def test_not_available_target_temperature(nvidia_smi_report, gpu_xml) -> None:
    """Test that an N/A reading only affects its own field."""
    report = nvidia_smi_report(
        gpu_xml(gpu_id="00000000:01:00.0"),
        gpu_xml(target="N/A", gpu_id="00000000:02:00.0"),
    )

    tokens = sample(Settings(), report).split("\t")

    assert tokens == [
        "⚡️G0:   7% ・  2/24GiB ・  30°C/ 83°C",
        "⚡️G1:   7% ・  2/24GiB ・  30°C/N/A°C",
    ]


def test_not_available_utilization_and_memory(nvidia_smi_report, gpu_xml) -> None:
    """Test N/A padding for utilization and memory in both units."""
    report = nvidia_smi_report(gpu_xml(util="N/A", used="N/A"))

    gib = sample(Settings(), report)
    mib = sample(Settings({"memory_unit": "MiB"}), report)

    assert gib == "⚡️G0: N/A% ・ N/A/24GiB ・  30°C/ 83°C"
    assert mib == "⚡️G0: N/A% ・  N/A/24576MiB ・  30°C/ 83°C"


def test_non_numeric_value_is_an_error(nvidia_smi_report, gpu_xml) -> None:
    """Test that a reading that is neither a number nor N/A is rejected."""
    assert sample(Settings(), nvidia_smi_report(gpu_xml(temp="hot"))) == ERROR_DISPLAY


def test_garbage_output_is_an_error() -> None:
    """Test that non-XML output renders the error sentinel."""
    assert sample(Settings(), "NVIDIA-SMI has failed because it couldn't communicate") == ERROR_DISPLAY


def test_zero_gpus(nvidia_smi_report) -> None:
    """Test the explicit display for a report with no GPUs."""
    assert sample(Settings(), nvidia_smi_report()) == NO_DEVICES_DISPLAY


def test_sampling_error_becomes_sentinel() -> None:
    """Test that command failures render the error sentinel."""
    assert sample(Settings(), SamplingError("nvidia-smi timed out after 2.0s")) == ERROR_DISPLAY


def test_source_recovers_after_failure(nvidia_smi_report, gpu_xml) -> None:
    """Test that a failing source renders normally once nvidia-smi works again."""
    source = ReportGPUSource(Settings(), SamplingError("boom"))
    assert asyncio.run(source.sample()) == ERROR_DISPLAY

    source.output = nvidia_smi_report(gpu_xml())
    assert asyncio.run(source.sample()).startswith("⚡️G0:")


def test_command_output_is_parsed(nvidia_smi_report, gpu_xml) -> None:
    """Test a real subprocess producing the report."""
    report = nvidia_smi_report(gpu_xml())
    source = GPUTelemetrySource(
        Settings(),
        command=(sys.executable, "-c", "import sys; sys.stdout.write(sys.argv[1])", report),
        timeout=10.0,
    )

    assert asyncio.run(source.sample()) == "⚡️G0:   7% ・  2/24GiB ・  30°C/ 83°C"


def test_missing_command_is_an_error() -> None:
    """Test that a missing binary renders the error sentinel."""
    source = GPUTelemetrySource(Settings(), command=("nvidia-smi-does-not-exist-here",))

    assert asyncio.run(source.sample()) == ERROR_DISPLAY


def test_failing_command_is_an_error() -> None:
    """Test that a non-zero exit code is reported with the code."""
    source = GPUTelemetrySource(Settings(), command=(sys.executable, "-c", "import sys; sys.exit(9)"))

    with pytest.raises(SamplingError, match="code 9"):
        asyncio.run(source._run_command())
    assert asyncio.run(source.sample()) == ERROR_DISPLAY


def test_slow_command_times_out() -> None:
    """Test that a hanging command is killed after the timeout."""
    source = GPUTelemetrySource(
        Settings(),
        command=(sys.executable, "-c", "import time; time.sleep(10)"),
        timeout=0.2,
    )

    with pytest.raises(SamplingError, match="timed out"):
        asyncio.run(source._run_command())


def test_xml_attributes_and_repeated_tags() -> None:
    """Test the XML to record tree conversion."""
    report = parse_report('<root a="1"><item>x</item><item>y</item><one>z</one></root>')

    assert report == {"root": {"@a": "1", "item": ["x", "y"], "one": "z"}}


def test_strip_unit() -> None:
    """Test measurement parsing."""
    assert strip_unit("2048 MiB", "MiB") == 2048
    assert strip_unit("45 %", "%") == 45
    assert strip_unit("30", "C") == 30
    assert strip_unit("N/A", "C") is None
    with pytest.raises(MalformedTelemetryError):
        strip_unit("30 F", "C")
    with pytest.raises(MalformedTelemetryError):
        strip_unit("Unknown Error", "C")


def test_round_half_up() -> None:
    """Test that halves round up."""
    assert round_half_up(2.5) == 3
    assert round_half_up(1536 / 1024) == 2
    assert round_half_up(86.0) == 86


def test_format_memory_not_available() -> None:
    """Test that N/A memory keeps the field width."""
    assert format_memory(None, MemoryUnit.GIB) == "N/A"
    assert format_memory(None, MemoryUnit.MIB) == " N/A"


def test_format_device_index() -> None:
    """Test the GPU index in the token prefix."""
    device = DeviceSample(
        utilization=12, memory_used=1024, memory_total=4096, temperature=55, target_temperature=90
    )

    token = format_device(3, device, MemoryUnit.GIB, TemperatureUnit.CELSIUS)

    assert token == "⚡️G3:  12% ・  1/ 4GiB ・  55°C/ 90°C"
