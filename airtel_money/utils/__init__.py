"""
Utility modules for the Airtel Money client
"""
from .config_loader import AirtelConfig, ConfigError, load_airtel_config

__all__ = [
    'AirtelConfig',
    'ConfigError',
    'load_airtel_config',
]
