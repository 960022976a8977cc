"""Consumer module."""

from .consumer import DeadLetter, ITopicConsumer, MessageCallback, TopicConsumer

__all__ = ["DeadLetter", "ITopicConsumer", "MessageCallback", "TopicConsumer"]
