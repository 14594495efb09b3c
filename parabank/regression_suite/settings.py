"""Load suite settings from the environment and execution profiles from YAML."""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from parabank.regression_suite.errors import ConfigurationError
from parabank.regression_suite.models.suite_config import (
    ExecutionProfile,
    SuiteSettings,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILES: dict[str, ExecutionProfile] = {
    "default": ExecutionProfile(
        name="default",
        tags="not @skip",
        parallel=1,
        report_name="cucumber-report.json",
    ),
    "api": ExecutionProfile(
        name="api",
        tags="@api",
        parallel=2,
        report_name="cucumber-api-report.json",
    ),
    "ui": ExecutionProfile(
        name="ui",
        tags="@ui",
        parallel=1,
        report_name="cucumber-ui-report.json",
    ),
    "smoke": ExecutionProfile(
        name="smoke",
        tags="@smoke",
        parallel=1,
        report_name="cucumber-smoke-report.json",
    ),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _parse_timeout(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _require_url(name: str, raw: str) -> str:
    url = raw.strip()
    if not url:
        raise ConfigurationError(f"{name} must not be empty")
    if not url.startswith(("http://", "https://")):
        raise ConfigurationError(f"{name} must be an http(s) URL, got {raw!r}")
    return url


def load_settings(env: Mapping[str, str] | None = None) -> SuiteSettings:
    """Build settings from environment variables.

    Args:
        env: Variables to read, defaults to ``os.environ``

    Returns:
        Settings with documented defaults for anything unset

    Raises:
        ConfigurationError: If a variable is present but empty or invalid

    """
    env = os.environ if env is None else env
    values: dict[str, object] = {}

    if "PARABANK_URL" in env:
        values["base_url"] = _require_url("PARABANK_URL", env["PARABANK_URL"])
    if "PARABANK_API_URL" in env:
        values["api_base_url"] = _require_url(
            "PARABANK_API_URL", env["PARABANK_API_URL"]
        ).rstrip("/")
    if "HEADLESS" in env:
        values["headless"] = _parse_bool("HEADLESS", env["HEADLESS"])
    if "STEP_TIMEOUT" in env:
        values["step_timeout"] = _parse_timeout("STEP_TIMEOUT", env["STEP_TIMEOUT"])
    if "PAGE_TIMEOUT" in env:
        values["page_timeout"] = _parse_timeout("PAGE_TIMEOUT", env["PAGE_TIMEOUT"])
    if "API_TIMEOUT" in env:
        values["api_timeout"] = _parse_timeout("API_TIMEOUT", env["API_TIMEOUT"])
    if env.get("REPORTS_DIR"):
        values["reports_dir"] = Path(env["REPORTS_DIR"])
    if "SCREENSHOT_ON_STEP" in env:
        values["screenshot_on_step"] = _parse_bool(
            "SCREENSHOT_ON_STEP", env["SCREENSHOT_ON_STEP"]
        )

    settings = SuiteSettings.model_validate(values)
    logger.info(
        f"Settings loaded: base_url={settings.base_url} "
        f"api_base_url={settings.api_base_url} headless={settings.headless}"
    )
    return settings


def load_profiles(path: Path | None = None) -> dict[str, ExecutionProfile]:
    """Return the built-in profiles, extended or overridden by a YAML file.

    The file maps profile names to profile fields::

        nightly:
          tags: "@regression and not @flaky"
          parallel: 2

    Raises:
        ConfigurationError: If the file is unreadable or a profile is invalid

    """
    profiles = dict(DEFAULT_PROFILES)
    if path is None:
        return profiles

    if not path.exists():
        raise ConfigurationError(f"Profiles file not found: {path}")

    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return profiles
    if not isinstance(data, dict):
        raise ConfigurationError(f"Profiles file must be a mapping: {path}")

    for name, fields in data.items():
        base = profiles.get(name)
        if fields is None:
            fields = {}
        if not isinstance(fields, dict):
            raise ConfigurationError(
                f"Invalid profile '{name}' in {path}: expected a mapping, "
                f"got {type(fields).__name__}"
            )
        merged = base.model_dump() if base else {}
        try:
            merged.update(fields)
            merged["name"] = name
            profiles[name] = ExecutionProfile.model_validate(merged)
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid profile '{name}' in {path}: {e}") from e

    return profiles


def select_profile(
    name: str | None = None,
    env: Mapping[str, str] | None = None,
    profiles_path: Path | None = None,
) -> ExecutionProfile:
    """Resolve the execution profile from an explicit name or ``PROFILE``.

    ``TAGS`` in the environment replaces the selected profile's expression.

    Raises:
        ConfigurationError: If the profile is unknown or ``TAGS`` is malformed

    """
    env = os.environ if env is None else env
    profiles = load_profiles(profiles_path)
    selected = name or env.get("PROFILE") or "default"

    profile = profiles.get(selected)
    if profile is None:
        raise ConfigurationError(
            f"Unknown profile: {selected}. Must be one of: {', '.join(profiles)}"
        )

    if env.get("TAGS"):
        try:
            profile = ExecutionProfile.model_validate(
                {**profile.model_dump(), "tags": env["TAGS"]}
            )
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid TAGS expression: {e}") from e

    logger.info(
        f"Profile selected: {profile.name} (tags='{profile.tags}', "
        f"parallel={profile.parallel})"
    )
    return profile
