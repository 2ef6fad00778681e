"""
Application constants and metadata.
"""

# Application info
APP_NAME = "NVIDIA Monitor"
APP_VERSION = "0.1.0"

# Sampling
NVIDIA_SMI_COMMAND = ("nvidia-smi", "-q", "-x")
NVIDIA_SMI_TIMEOUT = 2.0  # seconds

# Default values
DEFAULT_UPDATE_INTERVAL_MS = 5000
DEFAULT_STATUS_PRIORITY = 100
DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTT_KEEPALIVE = 60
DEFAULT_TOPIC_PREFIX = "nvidia_monitor"
