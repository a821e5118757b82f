"""Interfaces the publishing engine consumes.

The engine only talks to the vault and to Confluence through these
protocols; VaultDocumentStore and APIWrapper implement them, and tests use
in-memory fakes.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol

from src.models.confluence_page import ConfluencePage


class DocumentStore(Protocol):
    def list_documents(self) -> List[str]:
        ...

    def read_text(self, path: str) -> str:
        ...

    def read_binary(self, path: str) -> bytes:
        ...

    def get_links(self, path: str) -> List[str]:
        ...

    def get_tags(self, path: str) -> List[str]:
        ...

    def get_parent_declaration(self, path: str) -> Optional[str]:
        ...

    def resolve_link(self, target: str, from_path: Optional[str] = None) -> Optional[str]:
        ...


class RemoteService(Protocol):
    def get_page(self, page_id: str) -> ConfluencePage:
        ...

    def find_page_by_title(self, space: str, title: str) -> Optional[ConfluencePage]:
        ...

    def create_page(self, space: str, title: str, body: str, parent_id: Optional[str] = None) -> ConfluencePage:
        ...

    def update_page(self, page_id: str, title: str, body: str) -> ConfluencePage:
        ...

    def get_labels(self, page_id: str) -> List[str]:
        ...

    def add_labels(self, page_id: str, names: Iterable[str]) -> None:
        ...

    def remove_labels(self, page_id: str, names: Iterable[str]) -> None:
        ...

    def get_attachment(self, page_id: str, filename: str) -> Optional[Dict[str, Any]]:
        ...

    def upload_attachment(self, page_id: str, filename: str, data: bytes, content_type: str) -> None:
        ...

    def download_attachment(self, attachment: Dict[str, Any]) -> bytes:
        ...
