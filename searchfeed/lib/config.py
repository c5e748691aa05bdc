"""Configuration for search sources.

Configuration is written in YAML and validated once at startup. Every
problem found is reported together in a single ConfigurationError; a source
never starts with an invalid configuration.

Example YAML:
    input:
      twitter_search:
        query: warpstreamlabs
        tweet_fields: [created_at, public_metrics]
        poll_period: 1m
        backfill_period: 5m
        cache: state
        rate_limit: searches
        api_key: ${TWITTER_API_KEY}
        api_secret: ${TWITTER_API_SECRET}

    cache_resources:
      - label: state
        file:
          directory: ./.state

    rate_limit_resources:
      - label: searches
        local:
          count: 1
          interval: 2s

    output:
      file:
        path: ./tweets.jsonl

Usage:
    from searchfeed.lib.config import load_config
    config = load_config("./search.yaml")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from apscheduler.triggers.cron import CronTrigger

from searchfeed.lib.auth import TOKEN_URL
from searchfeed.lib.cursor import DEFAULT_CURSOR_KEY
from searchfeed.lib.durations import is_duration, parse_duration
from searchfeed.lib.env import expand_options
from searchfeed.lib.errors import ConfigurationError
from searchfeed.lib.query import SEARCH_URL

logger = logging.getLogger(__name__)

__all__ = [
    "SearchConfig",
    "AppConfig",
    "load_config",
    "config_from_dict",
]

INPUT_TYPE = "twitter_search"


@dataclass
class SearchConfig:
    """Settings for one recent-search source.

    query, cache, api_key and api_secret are required. At least one of
    poll_period and rate_limit must be set.
    """

    query: str = ""
    cache: str = ""
    api_key: str = ""
    api_secret: str = ""

    tweet_fields: List[str] = field(default_factory=list)
    poll_period: str = "1m"  # duration, cron expression, or "" to free-run
    backfill_period: str = "5m"
    cache_key: str = DEFAULT_CURSOR_KEY
    rate_limit: str = ""

    # Advanced
    base_url: str = SEARCH_URL
    token_url: str = TOKEN_URL
    timeout: float = 30.0
    max_retries: int = 3

    def __post_init__(self) -> None:
        """Validate configuration on instantiation."""
        errors = self._validate()
        if errors:
            raise ConfigurationError(
                f"Invalid {INPUT_TYPE} configuration", issues=errors
            )

    def _validate(self) -> List[str]:
        errors: List[str] = []

        if not self.query:
            errors.append("query is required (a search expression)")

        if not self.cache:
            errors.append("cache is required (label of a cache resource)")

        if not self.api_key:
            errors.append("api_key is required")

        if not self.api_secret:
            errors.append("api_secret is required")

        if not self.cache_key:
            errors.append("cache_key must not be empty")

        if not isinstance(self.tweet_fields, list) or not all(
            isinstance(f, str) and f for f in self.tweet_fields
        ):
            errors.append("tweet_fields must be a list of field names")

        if not self.poll_period and not self.rate_limit:
            errors.append("either a poll_period, a rate_limit, or both must be specified")
        elif self.poll_period and not is_duration(self.poll_period):
            try:
                CronTrigger.from_crontab(self.poll_period)
            except ValueError:
                errors.append(
                    f"poll_period '{self.poll_period}' is neither a duration "
                    "nor a cron expression"
                )

        try:
            if parse_duration(self.backfill_period) < timedelta(0):
                errors.append("backfill_period must not be negative")
        except ValueError:
            errors.append(f"backfill_period '{self.backfill_period}' is not a valid duration")

        if self.timeout <= 0:
            errors.append("timeout must be positive")

        if self.max_retries < 1:
            errors.append("max_retries must be at least 1")

        return errors

    @property
    def backfill(self) -> timedelta:
        return parse_duration(self.backfill_period)

    def describe(self) -> str:
        return f"{INPUT_TYPE}({self.query!r})"


@dataclass
class AppConfig:
    """A complete poller configuration: the source plus its resources."""

    search: SearchConfig
    cache_resources: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    rate_limit_resources: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        errors: List[str] = []

        if self.search.cache not in self.cache_resources:
            errors.append(f"cache resource '{self.search.cache}' is not defined")

        if self.search.rate_limit and self.search.rate_limit not in self.rate_limit_resources:
            errors.append(f"rate limit resource '{self.search.rate_limit}' is not defined")

        if errors:
            raise ConfigurationError("Invalid resource references", issues=errors)


def _resolve_path(path: str, config_dir: Path) -> str:
    """Resolve "./" and "../" paths relative to the config file."""
    if not path or os.path.isabs(path):
        return path
    if path.startswith("./") or path.startswith("../"):
        return str(config_dir / path)
    return path


def _collect_resources(
    entries: Any, section: str
) -> Dict[str, Dict[str, Any]]:
    if entries is None:
        return {}
    if not isinstance(entries, list):
        raise ConfigurationError(f"{section} must be a list", field=section)

    resources: Dict[str, Dict[str, Any]] = {}
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("label"):
            raise ConfigurationError(
                f"{section}[{index}] must be a mapping with a 'label'", field=section
            )
        label = str(entry["label"])
        if label in resources:
            raise ConfigurationError(f"Duplicate {section} label '{label}'", field=section)
        resources[label] = {k: v for k, v in entry.items() if k != "label"}
    return resources


def _build_search_config(options: Dict[str, Any]) -> SearchConfig:
    known = {f.name for f in fields(SearchConfig)}
    unknown = sorted(set(options) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {INPUT_TYPE} field(s): {', '.join(unknown)}",
            field=f"input.{INPUT_TYPE}",
        )

    values = dict(options)
    # YAML reads an empty value as null
    for key in ("poll_period", "rate_limit"):
        if key in values and values[key] is None:
            values[key] = ""
    if values.get("tweet_fields") is None:
        values.pop("tweet_fields", None)
    for key in ("query", "poll_period", "backfill_period", "api_key", "api_secret"):
        if key in values and not isinstance(values[key], str):
            values[key] = str(values[key])

    return SearchConfig(**values)


def config_from_dict(
    data: Dict[str, Any],
    config_dir: Optional[Path] = None,
) -> AppConfig:
    """Build an AppConfig from a parsed YAML document.

    ${VAR} references are expanded from the environment first.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config_dir = config_dir or Path.cwd()

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a YAML mapping")

    try:
        data = expand_options(data, strict=True)
    except KeyError as exc:
        raise ConfigurationError(str(exc.args[0])) from exc

    input_section = data.get("input")
    if not isinstance(input_section, dict) or INPUT_TYPE not in input_section:
        raise ConfigurationError(f"input.{INPUT_TYPE} is required", field="input")

    search_options = input_section[INPUT_TYPE] or {}
    if not isinstance(search_options, dict):
        raise ConfigurationError(
            f"input.{INPUT_TYPE} must be a mapping", field=f"input.{INPUT_TYPE}"
        )

    search = _build_search_config(search_options)

    cache_resources = _collect_resources(data.get("cache_resources"), "cache_resources")
    for options in cache_resources.values():
        file_options = options.get("file")
        if isinstance(file_options, dict) and file_options.get("directory"):
            file_options["directory"] = _resolve_path(
                str(file_options["directory"]), config_dir
            )

    rate_limit_resources = _collect_resources(
        data.get("rate_limit_resources"), "rate_limit_resources"
    )

    output = data.get("output") or {}
    if not isinstance(output, dict):
        raise ConfigurationError("output must be a mapping", field="output")
    file_output = output.get("file")
    if isinstance(file_output, dict) and file_output.get("path"):
        file_output["path"] = _resolve_path(str(file_output["path"]), config_dir)

    return AppConfig(
        search=search,
        cache_resources=cache_resources,
        rate_limit_resources=rate_limit_resources,
        output=output,
    )


def load_config(path: Union[str, Path]) -> AppConfig:
    """Load and validate a YAML configuration file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

    logger.debug("Loaded configuration from %s", config_path)
    return config_from_dict(data or {}, config_path.parent)
