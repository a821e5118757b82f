"""YAML configuration loading and validation.

Configuration file structure:
    space_key: "DOCS"
    vault_path: "."
    parent_page_id: "123456"          # or a page URL
    export_mode: outlinks             # outlinks | backlinks | graph
    graph_depth: 1
    hierarchy_mode: folder            # flat | links | folder | frontmatter | hybrid
    tie_break_policy: firstSeen       # firstSeen | closestToRoot | preferFolderIndex
    update_existing: true
    sync_labels: true
    upload_attachments: true
    child_pages_under_root: true
    state_dir: .confluence-publish
"""

from enum import Enum
from typing import Any, Dict, Type

import yaml

from src.publisher.models import ExportMode, HierarchyMode, TieBreakPolicy
from src.publisher.plan_review import extract_page_id

from .errors import ConfigError, ConfigNotFoundError
from .models import PublishConfig

DEFAULT_CONFIG_PATH = '.confluence-publish/config.yaml'


class ConfigLoader:
    """Handles configuration file loading and validation."""

    # Required top-level config fields
    REQUIRED_FIELDS = {'space_key'}

    BOOLEAN_FIELDS = (
        'update_existing',
        'sync_labels',
        'upload_attachments',
        'child_pages_under_root',
    )

    ENUM_FIELDS: Dict[str, Type[Enum]] = {
        'export_mode': ExportMode,
        'hierarchy_mode': HierarchyMode,
        'tie_break_policy': TieBreakPolicy,
    }

    @classmethod
    def load(cls, config_path: str = DEFAULT_CONFIG_PATH) -> PublishConfig:
        """Load and parse configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            PublishConfig with parsed configuration

        Raises:
            ConfigNotFoundError: If the file does not exist
            ConfigError: If configuration is invalid or malformed
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise ConfigNotFoundError(config_path)
        except OSError as e:
            raise ConfigError(f"Cannot read {config_path}: {e}")

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(
                f"Invalid YAML syntax: {str(e)}"
            )

        if config_dict is None:
            raise ConfigError("Configuration file is empty")

        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        return cls.parse(config_dict)

    @classmethod
    def parse(cls, config_dict: Dict[str, Any]) -> PublishConfig:
        """Validate a configuration dictionary.

        Raises:
            ConfigError: If a field is missing or has an invalid value
        """
        missing = cls.REQUIRED_FIELDS - set(config_dict)
        if missing:
            raise ConfigError(f"Missing required fields: {', '.join(sorted(missing))}")

        space_key = config_dict.get('space_key')
        if not isinstance(space_key, str) or not space_key.strip():
            raise ConfigError("Must be a non-empty string", 'space_key')

        values: Dict[str, Any] = {'space_key': space_key.strip()}

        vault_path = config_dict.get('vault_path', '.')
        if not isinstance(vault_path, str) or not vault_path.strip():
            raise ConfigError("Must be a non-empty string", 'vault_path')
        values['vault_path'] = vault_path

        parent = config_dict.get('parent_page_id')
        if parent is not None and str(parent).strip():
            page_id = extract_page_id(str(parent))
            if page_id is None:
                raise ConfigError(f"Not a page id or page URL: {parent}", 'parent_page_id')
            values['parent_page_id'] = page_id

        for name, enum_type in cls.ENUM_FIELDS.items():
            if name in config_dict:
                values[name] = cls._parse_enum(name, config_dict[name], enum_type)

        if 'graph_depth' in config_dict:
            depth = config_dict['graph_depth']
            if isinstance(depth, bool) or not isinstance(depth, int) or depth < 1:
                raise ConfigError(f"Must be a positive integer, got {depth!r}", 'graph_depth')
            values['graph_depth'] = depth

        for name in cls.BOOLEAN_FIELDS:
            if name in config_dict:
                value = config_dict[name]
                if not isinstance(value, bool):
                    raise ConfigError(f"Must be true or false, got {value!r}", name)
                values[name] = value

        if 'state_dir' in config_dict:
            state_dir = config_dict['state_dir']
            if not isinstance(state_dir, str) or not state_dir.strip():
                raise ConfigError("Must be a non-empty string", 'state_dir')
            values['state_dir'] = state_dir

        return PublishConfig(**values)

    @staticmethod
    def _parse_enum(name: str, value: Any, enum_type: Type[Enum]) -> Enum:
        try:
            return enum_type(value)
        except ValueError:
            allowed = ', '.join(member.value for member in enum_type)
            raise ConfigError(f"Invalid value {value!r}; expected one of: {allowed}", name)
