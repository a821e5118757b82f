"""YAML frontmatter parsing for vault notes.

Frontmatter is the YAML block between ``---`` delimiters at the top of a
note. The publisher reads two things from it: the note's tags (which become
Confluence labels) and an optional explicit parent declaration used by the
``frontmatter`` hierarchy mode.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import FrontmatterError

PARENT_KEYS = ('parent', 'Parent', 'confluenceParent')
TAG_KEYS = ('tags', 'tag')


class FrontmatterHandler:
    """Splits notes into frontmatter and body and reads publisher fields.

    Example:
        >>> meta, body = FrontmatterHandler.split("a.md", "---\\ntags: [x]\\n---\\nHi")
        >>> FrontmatterHandler.tags(meta)
        ['x']
    """

    FRONTMATTER_PATTERN = re.compile(
        r'^\ufeff?---[ \t]*\r?\n(.*?)\r?\n(?:---|\.\.\.)[ \t]*(?:\r?\n|$)',
        re.DOTALL
    )

    # Maximum allowed depth for YAML structures to prevent DoS attacks
    MAX_YAML_DEPTH = 10

    @classmethod
    def _validate_yaml_depth(cls, file_path: str, obj: Any, current_depth: int = 0) -> None:
        """Reject YAML nested deeper than MAX_YAML_DEPTH.

        Raises:
            FrontmatterError: If depth exceeds maximum
        """
        if current_depth > cls.MAX_YAML_DEPTH:
            raise FrontmatterError(
                file_path,
                f"YAML structure exceeds maximum depth of {cls.MAX_YAML_DEPTH}"
            )

        if isinstance(obj, dict):
            for value in obj.values():
                cls._validate_yaml_depth(file_path, value, current_depth + 1)
        elif isinstance(obj, list):
            for item in obj:
                cls._validate_yaml_depth(file_path, item, current_depth + 1)

    @classmethod
    def split(cls, file_path: str, content: str) -> Tuple[Dict[str, Any], str]:
        """Separate frontmatter from the note body.

        Args:
            file_path: Path of the note (for error messages)
            content: Full note text

        Returns:
            Tuple of (frontmatter dict, body). ({}, content) when there is
            no frontmatter block.

        Raises:
            FrontmatterError: If the YAML is malformed or not a mapping
        """
        match = cls.FRONTMATTER_PATTERN.match(content or '')
        if not match:
            return {}, content or ''

        body = content[match.end():]
        try:
            frontmatter = yaml.safe_load(match.group(1))
        except yaml.YAMLError as e:
            raise FrontmatterError(file_path, f"Invalid YAML syntax: {str(e)}")

        if frontmatter is None:
            return {}, body
        if not isinstance(frontmatter, dict):
            raise FrontmatterError(
                file_path,
                f"Frontmatter must be a YAML dictionary, got {type(frontmatter).__name__}"
            )

        cls._validate_yaml_depth(file_path, frontmatter)
        return frontmatter, body

    @staticmethod
    def tags(frontmatter: Dict[str, Any]) -> List[str]:
        """Return tags declared in frontmatter, without leading ``#``.

        Accepts a YAML list or a scalar string separated by commas or spaces.
        """
        tags: List[str] = []
        for key in TAG_KEYS:
            value = frontmatter.get(key)
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                candidates = [str(item) for item in value if item is not None]
            else:
                candidates = re.split(r'[,\s]+', str(value))
            for candidate in candidates:
                tag = candidate.strip().lstrip('#')
                if tag and tag not in tags:
                    tags.append(tag)
        return tags

    @staticmethod
    def parent_declaration(frontmatter: Dict[str, Any]) -> Optional[str]:
        """Return the declared parent note name, with wikilink brackets removed."""
        for key in PARENT_KEYS:
            value = frontmatter.get(key)
            if isinstance(value, list):
                value = value[0] if value else None
            if value is None:
                continue
            text = str(value).strip()
            if text.startswith('[[') and text.endswith(']]'):
                text = text[2:-2]
            text = text.split('|', 1)[0].strip()
            if text:
                return text
        return None
