"""In-memory document store and remote content service for unit tests."""

import posixpath
from typing import Dict, Iterable, List, Optional

from src.confluence_client.errors import APIAccessError, PageNotFoundError
from src.content_converter.markdown_prep import extract_inline_tags, extract_link_targets
from src.models.confluence_page import ConfluencePage
from src.vault.frontmatter_handler import FrontmatterHandler


class FakeDocumentStore:
    """Vault held in memory.

    Args:
        docs: Note path to Markdown text
        files: Non-note path to bytes (images and other attachments)
    """

    def __init__(self, docs: Dict[str, str], files: Optional[Dict[str, bytes]] = None):
        self.docs = dict(docs)
        self.files = dict(files or {})

    def _all_paths(self) -> List[str]:
        return sorted(list(self.docs) + list(self.files))

    def list_documents(self) -> List[str]:
        return sorted(self.docs)

    def read_text(self, path: str) -> str:
        return self.docs[path]

    def read_binary(self, path: str) -> bytes:
        if path in self.files:
            return self.files[path]
        return self.docs[path].encode('utf-8')

    def resolve_link(self, target: str, from_path: Optional[str] = None) -> Optional[str]:
        target = (target or '').strip()
        if not target:
            return None
        names = [target] if posixpath.splitext(target)[1] else [target, target + '.md']
        paths = self._all_paths()
        for name in names:
            if name in paths:
                return name
        for name in names:
            matches = [p for p in paths if posixpath.basename(p).lower() == posixpath.basename(name).lower()]
            if matches:
                return sorted(matches, key=lambda p: (len(p), p))[0]
        return None

    def get_links(self, path: str) -> List[str]:
        links: List[str] = []
        for target in extract_link_targets(self.docs[path]):
            resolved = self.resolve_link(target, path)
            if resolved and resolved != path and resolved in self.docs and resolved not in links:
                links.append(resolved)
        return links

    def get_backlinks(self, path: str) -> List[str]:
        return [doc for doc in self.list_documents() if doc != path and path in self.get_links(doc)]

    def get_tags(self, path: str) -> List[str]:
        frontmatter, _ = FrontmatterHandler.split(path, self.docs[path])
        tags = FrontmatterHandler.tags(frontmatter)
        for tag in extract_inline_tags(self.docs[path]):
            if tag not in tags:
                tags.append(tag)
        return tags

    def get_parent_declaration(self, path: str) -> Optional[str]:
        frontmatter, _ = FrontmatterHandler.split(path, self.docs[path])
        return FrontmatterHandler.parent_declaration(frontmatter)


class FakeRemote:
    """Confluence space held in memory.

    Every call is appended to ``calls`` as ``(method, first_argument)`` so
    tests can assert on order and on the absence of writes.

    Attributes:
        pages: Page id to ConfluencePage
        attachments: (page id, filename) to bytes
        failing_pages: Page ids whose get_page raises APIAccessError
        search_error: Exception raised by find_page_by_title, if set
    """

    WRITE_METHODS = (
        'create_page',
        'update_page',
        'add_labels',
        'remove_labels',
        'upload_attachment',
    )

    def __init__(self, space_key: str = 'DOCS'):
        self.space_key = space_key
        self.pages: Dict[str, ConfluencePage] = {}
        self.attachments: Dict[tuple, bytes] = {}
        self.failing_pages = set()
        self.search_error: Optional[Exception] = None
        self.download_error: Optional[Exception] = None
        self.calls: List[tuple] = []
        self._next_id = 1000

    # setup helpers

    def add_page(
        self,
        page_id: str,
        title: str,
        storage: str = '',
        labels: Iterable[str] = (),
        ancestors: Iterable[str] = (),
        space_key: Optional[str] = None,
    ) -> ConfluencePage:
        page = ConfluencePage(
            page_id=page_id,
            title=title,
            storage=storage,
            labels=list(labels),
            ancestors=list(ancestors),
            space_key=space_key or self.space_key,
            web_link=f"https://example.atlassian.net/wiki/spaces/{space_key or self.space_key}/pages/{page_id}",
        )
        self.pages[page_id] = page
        return page

    def writes(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in self.WRITE_METHODS]

    def _page(self, page_id: str) -> ConfluencePage:
        if page_id in self.failing_pages:
            raise APIAccessError(f"HTTP 500 for page {page_id}")
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        return self.pages[page_id]

    # remote content service

    def get_page(self, page_id: str) -> ConfluencePage:
        self.calls.append(('get_page', page_id))
        page = self._page(page_id)
        return ConfluencePage(
            page_id=page.page_id,
            title=page.title,
            version=page.version,
            storage=page.storage,
            labels=list(page.labels),
            ancestors=list(page.ancestors),
            space_key=page.space_key,
            web_link=page.web_link,
        )

    def find_page_by_title(self, space: str, title: str) -> Optional[ConfluencePage]:
        self.calls.append(('find_page_by_title', title))
        if self.search_error is not None:
            raise self.search_error
        for page in self.pages.values():
            if page.title == title and page.space_key == space:
                return page
        return None

    def create_page(self, space: str, title: str, body: str, parent_id: Optional[str] = None) -> ConfluencePage:
        self.calls.append(('create_page', title))
        self._next_id += 1
        ancestors: List[str] = []
        if parent_id:
            parent = self.pages.get(parent_id)
            ancestors = (list(parent.ancestors) if parent else []) + [parent_id]
        return self.add_page(str(self._next_id), title, body, ancestors=ancestors, space_key=space)

    def update_page(self, page_id: str, title: str, body: str) -> ConfluencePage:
        self.calls.append(('update_page', page_id))
        page = self._page(page_id)
        page.title = title
        page.storage = body
        page.version += 1
        return page

    def get_labels(self, page_id: str) -> List[str]:
        self.calls.append(('get_labels', page_id))
        return list(self._page(page_id).labels)

    def add_labels(self, page_id: str, names: Iterable[str]) -> None:
        self.calls.append(('add_labels', page_id))
        page = self._page(page_id)
        for name in names:
            if name not in page.labels:
                page.labels.append(name)

    def remove_labels(self, page_id: str, names: Iterable[str]) -> None:
        self.calls.append(('remove_labels', page_id))
        page = self._page(page_id)
        removed = set(names)
        page.labels = [label for label in page.labels if label not in removed]

    def get_attachment(self, page_id: str, filename: str) -> Optional[dict]:
        self.calls.append(('get_attachment', filename))
        data = self.attachments.get((page_id, filename))
        if data is None:
            return None
        return {
            'title': filename,
            'extensions': {'fileSize': len(data)},
            '_links': {'download': f"/download/attachments/{page_id}/{filename}"},
            '_page_id': page_id,
        }

    def upload_attachment(self, page_id: str, filename: str, data: bytes, content_type: str) -> None:
        self.calls.append(('upload_attachment', filename))
        self.attachments[(page_id, filename)] = data

    def download_attachment(self, attachment: dict) -> bytes:
        self.calls.append(('download_attachment', attachment['title']))
        if self.download_error is not None:
            raise self.download_error
        return self.attachments[(attachment['_page_id'], attachment['title'])]
