"""cmdsync — keep upstream command files in sync with local installs.

The synchronization engine is built from three cooperating pieces:
- A TTL-based content cache of remote version lists and item bundles
- A lockfile recording what was installed, from where, and in what state
- A reconciler that diffs a local install against a new remote version
"""

__version__ = "0.3.0"
