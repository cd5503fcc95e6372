"""
Action configuration.

Values come from the action arguments first, then environment variables,
then an optional YAML file named by ACTIONS_CONFIG_FILE, then defaults.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from clients.exceptions import ValidationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s: %(message)s"


@dataclass
class ActionConfig:
    """Connection settings and tunables shared by all actions."""

    cloudant_url: str = "http://localhost:5984"
    users_db: str = "users"
    users_design_doc: str = "users"
    bots_db: str = "bots"
    redis_uri: str = "redis://localhost:6379/0"
    context_ttl: int = 600
    conversation_api_url: str = "https://gateway.watsonplatform.net/conversation/api"
    conversation_username: str = ""
    conversation_password: str = ""
    conversation_version: str = "2017-05-26"
    workspace_id: str = ""
    persisted_attributes: List[str] = field(default_factory=list)
    cf_api_base: str = ""
    confidence_threshold: float = 0.5
    slack_client_id: str = ""
    slack_client_secret: str = ""
    slack_verification_token: str = ""
    slack_redirect_uri: str = ""
    request_timeout: int = 30


# config field -> accepted keys, in lookup order
CONFIG_KEYS: Dict[str, List[str]] = {
    "cloudant_url": ["CLOUDANT_URL", "cloudantUrl"],
    "users_db": ["USERS_DB"],
    "users_design_doc": ["USERS_DESIGN_DOC"],
    "bots_db": ["BOTS_DB", "cloudantDb"],
    "redis_uri": ["REDIS_URI"],
    "context_ttl": ["CONTEXT_TTL"],
    "conversation_api_url": ["CONVERSATION_API_URL"],
    "conversation_username": ["CONVERSATION_USERNAME"],
    "conversation_password": ["CONVERSATION_PASSWORD"],
    "conversation_version": ["CONVERSATION_VERSION"],
    "workspace_id": ["WORKSPACE_ID"],
    "persisted_attributes": ["PERSISTED_ATTR"],
    "cf_api_base": ["CF_API_BASE"],
    "confidence_threshold": ["CONFIDENCE_THRESHOLD"],
    "slack_client_id": ["SLACK_CLIENT_ID"],
    "slack_client_secret": ["SLACK_CLIENT_SECRET"],
    "slack_verification_token": ["SLACK_VERIFICATION_TOKEN"],
    "slack_redirect_uri": ["SLACK_REDIRECT_URI"],
    "request_timeout": ["REQUEST_TIMEOUT"],
}


def configure_logging(level: str = None) -> None:
    """Set up root logging once for an action process."""
    level = level or os.getenv("LOG_LEVEL", "INFO")
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def parse_persisted_attributes(value: Any) -> List[str]:
    """Parse the allow-list of persisted attributes (JSON list or list).

    Raises:
        ValidationError: If the value is not a list of attribute names
            (a configuration error, answered with 500).
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ValidationError(
                f"PERSISTED_ATTR is not valid JSON: {e}", status_code=500
            ) from e
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(
            "PERSISTED_ATTR must be a JSON list of attribute names", status_code=500
        )
    return value


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML config file; missing or unreadable files yield {}."""
    if not path:
        return {}
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config file {config_path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {config_path}: not a mapping")
        return {}
    return data


def _lookup(keys: List[str], sources: List[Dict[str, Any]]) -> Any:
    for source in sources:
        for key in keys:
            value = source.get(key)
            if value is not None and value != "":
                return value
    return None


def load_config(args: Optional[Dict[str, Any]] = None) -> ActionConfig:
    """Build the configuration for one invocation.

    Args:
        args: Action arguments; their upper-case keys override the environment

    Raises:
        ValidationError: If a value cannot be converted
    """
    args = args or {}
    file_path = args.get("ACTIONS_CONFIG_FILE") or os.getenv("ACTIONS_CONFIG_FILE")
    sources = [args, dict(os.environ), load_config_file(file_path)]

    config = ActionConfig()
    for name, keys in CONFIG_KEYS.items():
        value = _lookup(keys, sources)
        if value is None:
            continue
        if name == "persisted_attributes":
            value = parse_persisted_attributes(value)
        elif name in ("context_ttl", "request_timeout"):
            value = _convert(name, value, int)
        elif name == "confidence_threshold":
            value = _convert(name, value, float)
        setattr(config, name, value)

    return config


def _convert(name: str, value: Any, kind):
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Invalid value for {name}: {value!r}", status_code=500
        ) from e
