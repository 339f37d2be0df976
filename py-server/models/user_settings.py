"""
Persisted defaults applied to newly created annotations.
"""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ValidationError, field_validator

from models.pdf_types import DEFAULT_FONT_FAMILY, DEFAULT_FONT_SIZE
from utils.font_mapping import normalize_hex_color

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "user_settings.json"


class UserSettings(BaseModel):
    """Default font family, size, color and weight for new annotations"""
    defaultFontFamily: str = DEFAULT_FONT_FAMILY
    defaultFontSize: int = DEFAULT_FONT_SIZE
    defaultColor: str = "#000000"
    defaultBold: bool = False

    @field_validator('defaultColor', mode='before')
    @classmethod
    def _normalize_color(cls, value):
        return normalize_hex_color(value if isinstance(value, str) else None)

    @classmethod
    def load(cls, path: Union[str, Path] = DEFAULT_SETTINGS_FILE) -> 'UserSettings':
        """
        Read settings from a JSON file.

        A missing or unreadable file yields the defaults.
        """
        settings_path = Path(path)
        if not settings_path.exists():
            return cls()

        try:
            return cls.model_validate_json(settings_path.read_text(encoding='utf-8'))
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Could not read settings from {settings_path}: {e}")
            return cls()

    def save(self, path: Union[str, Path] = DEFAULT_SETTINGS_FILE) -> None:
        settings_path = Path(path)
        settings_path.write_text(json.dumps(self.model_dump(), indent=2), encoding='utf-8')
        logger.debug(f"Saved settings to {settings_path}")
