"""
Configuration Package

Environment loading and typed settings for the harvester.
"""

from scholar_harvester.config.env_loader import load_environment_variables, log_scholar_environment_variables
from scholar_harvester.config.settings import MAX_RESULTS_PER_OPERATION, PAGE_SIZE, ScholarSettings

__all__ = [
    'MAX_RESULTS_PER_OPERATION',
    'PAGE_SIZE',
    'ScholarSettings',
    'load_environment_variables',
    'log_scholar_environment_variables',
]
