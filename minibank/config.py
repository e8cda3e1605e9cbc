"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class BankConfig(BaseSettings):
    """Mini banking ledger configuration"""
    
    # Account product defaults
    default_savings_interest_rate: str = "0.03"  # 3% flat rate
    default_overdraft_limit: str = "500.00"
    
    # Identifier generation
    id_width: int = 3  # ACC001, C001, TX001
    
    # Security configuration
    min_password_length: int = 4
    max_login_attempts: int = 3
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Feature flags
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "MINIBANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BankConfig()


def get_config() -> BankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankConfig:
    """Reload configuration from environment"""
    global config
    config = BankConfig()
    return config
