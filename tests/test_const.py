"""
Tests for constants.
"""

from nvidia_monitor import __version__
from nvidia_monitor.const import APP_NAME, APP_VERSION, NVIDIA_SMI_COMMAND, NVIDIA_SMI_TIMEOUT


def test_constants() -> None:
    """Test that constants are defined."""
    assert APP_NAME == "NVIDIA Monitor"
    assert APP_VERSION == __version__


def test_sampling_command() -> None:
    """Test the sampling command and timeout."""
    assert NVIDIA_SMI_COMMAND == ("nvidia-smi", "-q", "-x")
    assert NVIDIA_SMI_TIMEOUT == 2.0
