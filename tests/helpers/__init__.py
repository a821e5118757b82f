"""Test helper modules for publisher testing.

This package provides in-memory stand-ins for the external services:
- fakes.FakeDocumentStore: vault of notes held in a dict
- fakes.FakeRemote: Confluence space held in a dict, recording every call
"""

from .fakes import FakeDocumentStore, FakeRemote

__all__ = [
    'FakeDocumentStore',
    'FakeRemote',
]
