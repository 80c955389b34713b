# src/otelpipe/logs/__init__.py
"""Logs signal: providers, processors and the stdlib logging bridge.

Example:
    >>> from otelpipe.logs import LoggerProvider
    >>> provider = LoggerProvider.builder().with_batch_exporter(exporter).build()
    >>> provider.logger("app").emit(LogRecord(body="hello"))
    >>> provider.shutdown()
"""

from otelpipe.logs.handler import LoggingHandler, severity_from_level
from otelpipe.logs.processor import BatchLogProcessor, SimpleLogProcessor
from otelpipe.logs.protocols import LogBatch, LogExporter, LogProcessor
from otelpipe.logs.provider import Logger, LoggerProvider, LoggerProviderBuilder

__all__ = [
    "BatchLogProcessor",
    "LogBatch",
    "LogExporter",
    "LogProcessor",
    "Logger",
    "LoggerProvider",
    "LoggerProviderBuilder",
    "LoggingHandler",
    "SimpleLogProcessor",
    "severity_from_level",
]
