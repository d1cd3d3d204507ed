"""Switch event publishing."""

from .mqtt_publisher import MqttEventPublisher, event_topic

__all__ = [
    'MqttEventPublisher',
    'event_topic',
]
