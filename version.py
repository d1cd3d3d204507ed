"""Version information for PulseRelay."""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)

# Release notes for this version
RELEASE_NOTES = """
PulseRelay v1.0.0

Key Features:
- Momentary on/off, auto-off timers, blink and round-robin flipflop per switch or group
- At most one running task and one auto-off timer per target
- Dummy, Tasmota (HTTP) and Kasa/Tapo switch drivers
- JSON HTTP API and optional MQTT event publishing
- Configuration via YAML and PULSERELAY_ environment variables
"""
