# src/otelpipe/testing/__init__.py
"""Test doubles for applications that use otelpipe."""

from otelpipe.testing.exporters import InMemoryLogExporter, InMemoryMetricExporter

__all__ = ["InMemoryLogExporter", "InMemoryMetricExporter"]
