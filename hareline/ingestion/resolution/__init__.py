"""
Group identity resolution: free-text group tags to canonical group ids.
"""

from hareline.ingestion.resolution.cache import ResolverCache
from hareline.ingestion.resolution.directory import GroupDirectory
from hareline.ingestion.resolution.resolver import IdentityResolver, ResolvedIdentity

__all__ = ["GroupDirectory", "IdentityResolver", "ResolvedIdentity", "ResolverCache"]
