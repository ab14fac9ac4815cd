"""
Aura Vault - Source Package

The persistence and derivation core of a voice-capture journal.
Spoken utterances arrive already classified; this package turns them
into typed records and keeps them in a local multi-table store.

DESIGN PRINCIPLES:
1. Disk first, memory second (the view is never ahead of disk)
2. Fail early, fail visibly
3. Every foreign key resolves
4. Imports add, they never overwrite
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Aura Vault Team"
