"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class ServiceConfig(BaseSettings):
    """Transaction service configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///transactions.db"  # memory://, sqlite:///path, postgresql://...
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    api_reload: bool = False
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    default_currency: str = "USD"
    strict_deposit_source: bool = False  # Unknown deposit source fails instead of being ignored
    
    class Config:
        env_prefix = "TXN_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = ServiceConfig()


def get_config() -> ServiceConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> ServiceConfig:
    """Reload configuration from environment"""
    global config
    config = ServiceConfig()
    return config
