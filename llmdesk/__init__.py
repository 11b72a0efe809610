"""LLM Desk provider and model catalog."""

__version__ = "0.1.0"
