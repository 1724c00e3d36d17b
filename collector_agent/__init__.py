"""Version and host information, logging configuration and service lifecycle for a collector agent."""

__version__ = "0.1.0"