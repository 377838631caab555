"""
Configuration package for the player roster system.
"""

from .config_manager import ConfigManager

__all__ = ['ConfigManager']
