"""
Pytest configuration and fixtures.
"""

from collections.abc import Callable
from pathlib import Path

import pytest


GPU_TEMPLATE = """
    <gpu id="{gpu_id}">
        <product_name>NVIDIA GeForce RTX 3090</product_name>
        <fb_memory_usage>
            <total>{total}</total>
            <reserved>312 MiB</reserved>
            <used>{used}</used>
            <free>22216 MiB</free>
        </fb_memory_usage>
        <bar1_memory_usage>
            <total>256 MiB</total>
            <used>5 MiB</used>
            <free>251 MiB</free>
        </bar1_memory_usage>
        <utilization>
            <gpu_util>{util}</gpu_util>
            <memory_util>3 %</memory_util>
        </utilization>
        <temperature>
            <gpu_temp>{temp}</gpu_temp>
            <gpu_temp_max_threshold>98 C</gpu_temp_max_threshold>
            <gpu_target_temperature>{target}</gpu_target_temperature>
        </temperature>
    </gpu>
"""

REPORT_TEMPLATE = """<?xml version="1.0" ?>
<!DOCTYPE nvidia_smi_log SYSTEM "nvsmi_device_v12.dtd">
<nvidia_smi_log>
    <timestamp>Mon Oct 19 12:00:00 2026</timestamp>
    <driver_version>550.54.14</driver_version>
    <cuda_version>12.4</cuda_version>
    <attached_gpus>{attached}</attached_gpus>
{gpus}
</nvidia_smi_log>
"""


def make_gpu(
    util: str = "7 %",
    used: str = "2048 MiB",
    total: str = "24576 MiB",
    temp: str = "30 C",
    target: str = "83 C",
    gpu_id: str = "00000000:01:00.0",
) -> str:
    """XML for one <gpu> element."""
    return GPU_TEMPLATE.format(
        util=util, used=used, total=total, temp=temp, target=target, gpu_id=gpu_id
    )


def make_report(*gpus: str, attached: int | None = None) -> str:
    """XML for a full nvidia-smi report; attached defaults to len(gpus)."""
    if attached is None:
        attached = len(gpus)
    return REPORT_TEMPLATE.format(attached=attached, gpus="".join(gpus))


@pytest.fixture
def gpu_xml() -> Callable[..., str]:
    return make_gpu


@pytest.fixture
def nvidia_smi_report() -> Callable[..., str]:
    return make_report


@pytest.fixture
def example_config_path() -> Path:
    """Path to the example config shipped at the repository root."""
    return Path(__file__).parent.parent / "config.example.conf"
