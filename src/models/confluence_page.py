"""Confluence page data model."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ConfluencePage:
    """Confluence page as seen through the REST API.

    Attributes:
        page_id: Backend-assigned page identifier
        title: Page title
        version: Current version number
        storage: Page body in Confluence storage format (XHTML)
        labels: Label names attached to the page
        ancestors: Ancestor page IDs, outermost first
        space_key: Space key where the page resides (e.g., "TEAM")
        web_link: Absolute browser URL of the page, if known
    """
    page_id: str
    title: str
    version: int = 1
    storage: str = ""
    labels: List[str] = field(default_factory=list)
    ancestors: List[str] = field(default_factory=list)
    space_key: Optional[str] = None
    web_link: Optional[str] = None

    @property
    def parent_id(self) -> Optional[str]:
        """Direct parent page ID, or None for a top-level page."""
        return self.ancestors[-1] if self.ancestors else None

    @classmethod
    def from_api(cls, data: Dict[str, Any], base_url: str = "") -> "ConfluencePage":
        """Build a page from a REST content payload.

        Fields that were not expanded in the request default to empty values.

        Args:
            data: Content JSON as returned by /rest/api/content
            base_url: Fallback base URL for the web link when _links.base is absent

        Returns:
            ConfluencePage instance
        """
        links = data.get('_links') or {}
        webui = links.get('webui')
        web_link = None
        if webui:
            web_link = (links.get('base') or base_url).rstrip('/') + webui

        label_results = (
            ((data.get('metadata') or {}).get('labels') or {}).get('results') or []
        )

        return cls(
            page_id=str(data.get('id', '')),
            title=data.get('title', ''),
            version=int((data.get('version') or {}).get('number', 1)),
            storage=((data.get('body') or {}).get('storage') or {}).get('value', ''),
            labels=[label.get('name', '') for label in label_results if label.get('name')],
            ancestors=[str(a.get('id')) for a in data.get('ancestors') or [] if a.get('id')],
            space_key=(data.get('space') or {}).get('key'),
            web_link=web_link,
        )
