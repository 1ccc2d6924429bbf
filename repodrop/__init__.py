"""repodrop: atomic artifact uploads to a git-style REST remote.

One upload is one commit: the artifact and the updated JSON manifest
(``content.json``) land together or not at all.  Concurrent writers are
handled with optimistic concurrency; the branch ref is moved with a
compare-and-swap and a losing attempt is re-planned on the new head.
"""

__version__ = "0.2.0"
__description__ = "Atomic multi-object commits of uploaded artifacts plus their manifest"

from repodrop.bridge.github import GitHubObjectStore
from repodrop.bridge.memory import InMemoryObjectStore
from repodrop.core.commit_coordinator import CommitCoordinator
from repodrop.core.uploader import ArtifactUploader
from repodrop.models.upload import UploadRequest, UploadResult

__all__ = [
    "ArtifactUploader",
    "CommitCoordinator",
    "GitHubObjectStore",
    "InMemoryObjectStore",
    "UploadRequest",
    "UploadResult",
    "__version__",
]
