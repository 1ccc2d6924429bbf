"""Remote object store adapters.

``RemoteObjectStore`` is the protocol the commit pipeline depends on;
``GitHubObjectStore`` talks to the GitHub REST API and
``InMemoryObjectStore`` keeps everything in process.
"""

from repodrop.bridge.github import GitHubObjectStore
from repodrop.bridge.memory import InMemoryObjectStore
from repodrop.bridge.object_store import RemoteObjectStore

__all__ = ["RemoteObjectStore", "GitHubObjectStore", "InMemoryObjectStore"]
