"""
Render settings.

Resolved from, in order of precedence: explicit overrides (CLI options),
MAILVIEW_* environment variables, the "mailview" namespace of the
preferences JSON file, built-in defaults.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from .tables import LayoutPolicy

logger = logging.getLogger(__name__)

PREFERENCES_NAMESPACE = "mailview"
DEFAULT_PREFERENCES_PATH = "~/.config/mailview/preferences.json"


class RenderSettings(BaseModel):
    """Settings handed to the renderer and the ICS parser."""

    width: int = Field(default=80, ge=20)
    user_email: Optional[str] = None  # Viewer address for RSVP status
    layout_policy: LayoutPolicy = Field(default_factory=LayoutPolicy)


def get_preferences_path(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    configured = env.get("MAILVIEW_PREFERENCES_PATH")
    if configured:
        return Path(configured).expanduser().resolve()
    return Path(DEFAULT_PREFERENCES_PATH).expanduser()


def read_preferences(path: Optional[Path] = None) -> Dict[str, Any]:
    """The "mailview" namespace of the preferences file, or {} if unusable."""
    path = path or get_preferences_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text() or "{}")
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable preferences file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        return {}
    section = data.get(PREFERENCES_NAMESPACE, {})
    return section if isinstance(section, dict) else {}


def _from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if env.get("MAILVIEW_WIDTH"):
        values["width"] = env["MAILVIEW_WIDTH"].strip()
    if env.get("MAILVIEW_USER_EMAIL"):
        values["user_email"] = env["MAILVIEW_USER_EMAIL"].strip()
    return values


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    preferences_path: Optional[Path] = None,
    **overrides: Any,
) -> RenderSettings:
    """
    Build RenderSettings from all configuration sources.

    Overrides whose value is None are ignored, so CLI options can be passed
    straight through. Raises pydantic.ValidationError for invalid values.
    """
    env = os.environ if env is None else env
    prefs = read_preferences(preferences_path or get_preferences_path(env))

    values: Dict[str, Any] = {}
    for key in ("width", "user_email", "layout_policy"):
        if prefs.get(key) is not None:
            values[key] = prefs[key]
    values.update(_from_env(env))
    values.update({key: value for key, value in overrides.items() if value is not None})

    return RenderSettings(**values)
