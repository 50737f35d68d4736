"""Memory-mapped peripheral models for scientific calculator emulation."""

__version__ = "0.1.0"