"""Configuration module for loading and managing application settings"""
from typing import Dict, Any
from .lib.load_settings_conf import load_settings_conf, validate_settings, SettingsError, DEFAULTS

__all__ = ['settings_conf', 'load_config', 'SettingsError', 'DEFAULTS']

def load_config(settings_path: str = ".") -> Dict[str, Any]:
    """Load configuration from settings.conf.

    Args:
        settings_path: Directory containing settings.conf, defaults to
                       the current working directory.

    Returns:
        Dictionary of validated settings
    """
    return load_settings_conf(settings_path)

try:
    settings_conf: Dict[str, Any] = load_settings_conf()

except SettingsError as e:
    # Re-raise the error but provide more context
    raise SettingsError(
        f"Configuration Error\n"
        "=================\n\n"
        f"{str(e)}\n\n"
        "Please check settings.conf in the working directory."
    )
