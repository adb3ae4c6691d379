from pydantic_settings import BaseSettings
from typing import Optional
import logging


class Settings(BaseSettings):
    # Database Configuration
    database_url: str = "sqlite+aiosqlite:///./categories.db"
    sql_echo: bool = False

    # Logging
    log_level: str = "INFO"

    # Hierarchy
    max_category_depth: int = 64  # Bound for parent walks, anything deeper is a corrupted tree

    # Category images
    category_image_format: str = "JPEG"
    category_image_quality: int = 80
    category_image_max_width: Optional[int] = None

    class Config:
        env_prefix = "CATEGORY_TREE_"
        case_sensitive = False


settings = Settings()


def configure_logging(level: Optional[str] = None):
    """Configure root logging the same way for scripts and applications"""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
