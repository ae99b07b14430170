"""Synchronization — reconciling, installing and updating command files.

This package provides the primitives for:
- Reconciliation: classify local vs remote items by content hash
- Installation: write items to a target without clobbering user edits
- Enable/disable: reversible per-item switch realized on the filesystem
- Update checks and drift detection against the recorded lockfile
"""
