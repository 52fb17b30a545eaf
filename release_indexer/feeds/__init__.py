"""
Offline data feeds.

Indexes built once per run from files of a local mirror:
- Module permissions (06perms.txt, 02packages.details.txt.gz)
- Primary mirror listing for BackPAN detection (find-ls.gz)
"""

from release_indexer.feeds.permissions import PermissionsIndex
from release_indexer.feeds.backpan import BackpanIndex, StatusResolver, BACKPAN_STATUS

__all__ = [
    "PermissionsIndex",
    "BackpanIndex",
    "StatusResolver",
    "BACKPAN_STATUS",
]
