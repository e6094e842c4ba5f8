# src/botflow/core/__init__.py
"""Core infrastructure: configuration, logging, graph validation."""
