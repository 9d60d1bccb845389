"""
Kafka infrastructure package.
"""

from .listener import ListenerGroup, ListenerState, TopicListener, decode_message
from .producer import EventPublisher, KafkaProducer

__all__ = [
    "KafkaProducer",
    "EventPublisher",
    "TopicListener",
    "ListenerGroup",
    "ListenerState",
    "decode_message",
]
