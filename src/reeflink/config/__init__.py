"""
Configuration module for the reeflink pipeline.
"""

from .settings import (
    Config,
    ConfigurationError,
    OutputConfig,
    ProcessingConfig,
    SourceConfig,
)

__all__ = [
    'Config',
    'ConfigurationError',
    'OutputConfig',
    'ProcessingConfig',
    'SourceConfig',
]
