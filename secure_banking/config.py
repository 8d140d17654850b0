"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Optional


class SecureBankingConfig(BaseSettings):
    """Secure banking safeguards configuration"""
    
    # Deployment
    environment: str = "development"  # development, test, production
    
    # Encryption configuration
    encryption_key: str = ""  # SECURE_BANKING_ENCRYPTION_KEY env var
    encryption_cipher: str = "aesgcm"  # aesgcm, aescbc (compatibility)
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    minimum_age_years: int = 18
    maximum_age_years: int = 120
    min_funding_amount: Decimal = Decimal("0.01")
    max_funding_amount: Decimal = Decimal("10000.00")
    
    class Config:
        env_prefix = "SECURE_BANKING_"
        env_file = ".env"
        case_sensitive = False
    
    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# Global configuration instance
config = SecureBankingConfig()


def get_config() -> SecureBankingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> SecureBankingConfig:
    """Reload configuration from environment"""
    global config
    config = SecureBankingConfig()
    return config
