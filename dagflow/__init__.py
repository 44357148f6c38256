"""DAG workflow engine with durable steps and live node status."""

__version__ = "0.1.0"
