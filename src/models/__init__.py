"""Data models for remote Confluence pages."""

from src.models.confluence_page import ConfluencePage

__all__ = ['ConfluencePage']
