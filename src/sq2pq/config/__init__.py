"""
Configuration module for the sq2pq export pipeline.
"""

from .settings import (
    Config,
    ConfigurationError,
    ExportFileConfig,
    OutputConfig,
    ProcessingConfig,
    UploadConfig,
    load_export_file,
)

__all__ = [
    'Config',
    'ConfigurationError',
    'ExportFileConfig',
    'OutputConfig',
    'ProcessingConfig',
    'UploadConfig',
    'load_export_file'
]
