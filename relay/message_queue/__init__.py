"""
Message Queue System

Broker abstraction consumed by the relay pipeline:
- Abstract broker interface (publish, receive, acknowledge, redeliver)
- In-memory broker with redelivery counting for tests and single-instance use
- Consumer worker that dispatches batches to handlers concurrently
"""

from relay.message_queue.base import MessageQueue, QueueMessage, QueueMetrics, Disposition
from relay.message_queue.memory import InMemoryQueue
from relay.message_queue.worker import QueueWorker, BatchHandler

__all__ = [
    "MessageQueue",
    "QueueMessage",
    "QueueMetrics",
    "Disposition",
    "InMemoryQueue",
    "QueueWorker",
    "BatchHandler",
]
