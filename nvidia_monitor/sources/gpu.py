"""
NVIDIA GPU telemetry source.

Runs `nvidia-smi -q -x`, parses the XML report and renders one token
per GPU:

    ⚡️G0:  45% ・  2/24GiB ・  30°C/ 83°C

Tokens for multiple GPUs are separated by a tab. Any failure to run
nvidia-smi or to make sense of its report is rendered as
"nvidia-smi error" instead. A reading nvidia-smi reports as N/A is
shown as N/A in its own field and does not affect the rest.
"""

import asyncio
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any

from ..config.schema import MemoryUnit, Settings, TemperatureUnit
from ..const import NVIDIA_SMI_COMMAND, NVIDIA_SMI_TIMEOUT
from ..logging import get_logger
from .base import MalformedTelemetryError, SamplingError, TelemetrySource


logger = get_logger("sources.gpu")

ERROR_DISPLAY = "nvidia-smi error"
NO_DEVICES_DISPLAY = "nvidia-smi: no GPUs"

DEVICE_SEPARATOR = "\t"

NOT_AVAILABLE = "N/A"

# "45 %", "2048 MiB", "30 C"
_MEASUREMENT_RE = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)\s*(\S*)\s*$")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding up."""
    return math.floor(value + 0.5)


def xml_to_record(element: ET.Element) -> Any:
    """
    Convert an XML element into nested dicts.

    Leaf elements become their stripped text. Attributes are stored under
    '@name'. A tag that repeats becomes a list; a tag that appears once
    stays a plain value, so callers must not assume a list.
    """
    children = list(element)
    text = (element.text or "").strip()

    if not children and not element.attrib:
        return text

    record: dict[str, Any] = {f"@{key}": value for key, value in element.attrib.items()}
    for child in children:
        value = xml_to_record(child)
        if child.tag not in record:
            record[child.tag] = value
        elif isinstance(record[child.tag], list):
            record[child.tag].append(value)
        else:
            record[child.tag] = [record[child.tag], value]

    if not children and text:
        record["#text"] = text

    return record


def parse_report(xml_text: str) -> dict[str, Any]:
    """Parse an nvidia-smi XML report into a record tree."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise MalformedTelemetryError(f"Invalid XML from nvidia-smi: {e}") from e
    return {root.tag: xml_to_record(root)}


def _field(record: Any, *path: str) -> str:
    value = record
    for name in path:
        if not isinstance(value, dict) or name not in value:
            raise MalformedTelemetryError(f"Missing field: {'.'.join(path)}")
        value = value[name]
    if not isinstance(value, str):
        raise MalformedTelemetryError(f"Field is not a value: {'.'.join(path)}")
    return value


def strip_unit(raw: str, unit: str) -> float | None:
    """
    Parse a measurement like "2048 MiB" into its number.

    Returns None for "N/A", which nvidia-smi reports for readings the
    device does not support.

    Raises:
        MalformedTelemetryError: Not a number, or carries another unit
    """
    if raw.strip() == NOT_AVAILABLE:
        return None

    match = _MEASUREMENT_RE.match(raw)
    if not match or match.group(2) not in ("", unit):
        raise MalformedTelemetryError(f"Expected a value in {unit}, got {raw!r}")
    return float(match.group(1))


@dataclass
class DeviceSample:
    """Raw readings for one GPU, in nvidia-smi's native units. None means N/A."""

    utilization: float | None  # percent
    memory_used: float | None  # MiB
    memory_total: float | None  # MiB
    temperature: float | None  # Celsius
    target_temperature: float | None  # Celsius

    @classmethod
    def from_record(cls, record: Any) -> "DeviceSample":
        return cls(
            utilization=strip_unit(_field(record, "utilization", "gpu_util"), "%"),
            memory_used=strip_unit(_field(record, "fb_memory_usage", "used"), "MiB"),
            memory_total=strip_unit(_field(record, "fb_memory_usage", "total"), "MiB"),
            temperature=strip_unit(_field(record, "temperature", "gpu_temp"), "C"),
            target_temperature=strip_unit(
                _field(record, "temperature", "gpu_target_temperature"), "C"
            ),
        )


def parse_devices(xml_text: str) -> list[DeviceSample]:
    """
    Extract per-GPU samples from an nvidia-smi XML report.

    Raises:
        MalformedTelemetryError: Structure is missing or the number of
            GPU records differs from 'attached_gpus'
    """
    report = parse_report(xml_text).get("nvidia_smi_log")
    if not isinstance(report, dict):
        raise MalformedTelemetryError("Report has no nvidia_smi_log root")

    try:
        count = int(_field(report, "attached_gpus"))
    except ValueError as e:
        raise MalformedTelemetryError(f"Invalid attached_gpus: {e}") from e

    gpus = report.get("gpu", [])
    # A single <gpu> element is not a list in the record tree
    if isinstance(gpus, dict):
        gpus = [gpus]

    if not isinstance(gpus, list) or len(gpus) != count:
        found = len(gpus) if isinstance(gpus, list) else "invalid"
        raise MalformedTelemetryError(f"attached_gpus is {count}, found {found} GPU records")

    return [DeviceSample.from_record(gpu) for gpu in gpus]


def format_memory(value_mib: float | None, unit: MemoryUnit) -> str:
    """Format a MiB amount in the display unit, padded to a fixed width."""
    if unit == MemoryUnit.GIB:
        width, scale = 2, 1024
    else:
        width, scale = 4, 1

    if value_mib is None:
        return f"{NOT_AVAILABLE:>{width}}"
    return f"{round_half_up(value_mib / scale):>{width}}"


def format_temperature(celsius: float | None, unit: TemperatureUnit) -> str:
    """Format a Celsius reading in the display unit, padded to 3 characters."""
    if celsius is None:
        return NOT_AVAILABLE
    if unit == TemperatureUnit.FAHRENHEIT:
        return f"{round_half_up(celsius * 9 / 5 + 32):>3}"
    return f"{round_half_up(celsius):>3}"


def format_device(
    index: int,
    sample: DeviceSample,
    memory_unit: MemoryUnit,
    temperature_unit: TemperatureUnit,
) -> str:
    """Render one GPU as a single status token."""
    if sample.utilization is None:
        utilization = NOT_AVAILABLE
    else:
        utilization = f"{int(sample.utilization):>3}"
    used = format_memory(sample.memory_used, memory_unit)
    total = format_memory(sample.memory_total, memory_unit)
    current = format_temperature(sample.temperature, temperature_unit)
    target = format_temperature(sample.target_temperature, temperature_unit)
    temp = temperature_unit.value

    return (
        f"⚡️G{index}: {utilization}% ・ {used}/{total}{memory_unit.value}"
        f" ・ {current}{temp}/{target}{temp}"
    )


class GPUTelemetrySource(TelemetrySource):
    """
    Telemetry source for NVIDIA GPUs via nvidia-smi.
    """

    def __init__(
        self,
        settings: Settings,
        command: tuple[str, ...] = NVIDIA_SMI_COMMAND,
        timeout: float = NVIDIA_SMI_TIMEOUT,
    ):
        """
        Initialize GPU source.

        Args:
            settings: Settings snapshot
            command: Sampling command line
            timeout: Seconds before the sampling command is killed
        """
        super().__init__(settings, key="gpu", shown_by_default=True, max_width=30)
        self.command = command
        self.timeout = timeout
        self._last_error: str | None = None

    async def _run_command(self) -> str:
        """
        Run the sampling command and return its stdout.

        Raises:
            SamplingError: Spawn failure, timeout or non-zero exit
        """
        name = self.command[0]

        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SamplingError(f"Cannot run {name}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            raise SamplingError(f"{name} timed out after {self.timeout}s") from None

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or stdout.decode(errors="replace").strip()
            raise SamplingError(f"{name} exited with code {proc.returncode}: {detail}")

        return stdout.decode(errors="replace")

    async def sample(self) -> str:
        """Sample all GPUs and render their tokens."""
        try:
            devices = parse_devices(await self._run_command())
        except SamplingError as e:
            message = str(e)
            if message != self._last_error:
                logger.error(f"Error getting GPU info from nvidia-smi: {message}")
            else:
                logger.debug(f"nvidia-smi still failing: {message}")
            self._last_error = message
            return ERROR_DISPLAY

        if self._last_error is not None:
            logger.info("nvidia-smi recovered")
            self._last_error = None

        if not devices:
            logger.debug("nvidia-smi reports no attached GPUs")
            return NO_DEVICES_DISPLAY

        memory_unit = self.settings.memory_unit
        temperature_unit = self.settings.temperature_unit

        return DEVICE_SEPARATOR.join(
            format_device(index, device, memory_unit, temperature_unit)
            for index, device in enumerate(devices)
        )
