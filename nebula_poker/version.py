"""
Version information for Nebula Poker.
This file is updated on releases.
"""

VERSION = "1.0.0"
BUILD_DATE = "2026-10-19 00:00:00 UTC"
COMMIT_HASH = "dev"


def get_version_info():
    """Get formatted version information"""
    return {
        'version': VERSION,
        'build_date': BUILD_DATE,
        'commit_hash': COMMIT_HASH
    }
