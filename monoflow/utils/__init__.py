"""
Utility functions and classes for MonoFlow
"""

from .logging import get_logger, log_execution_time, setup_logging
from .validation import (check_package_versions, get_system_info,
                         validate_count_table, validate_directory_exists,
                         validate_environment, validate_file_exists,
                         validate_lookup_file, validate_output_permissions)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_execution_time",
    "validate_file_exists",
    "validate_directory_exists",
    "validate_count_table",
    "validate_lookup_file",
    "check_package_versions",
    "validate_environment",
    "validate_output_permissions",
    "get_system_info",
]
