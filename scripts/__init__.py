"""
Scripts package for the directory membership tools.

Subpackages:
- membership: Nested group resolution, membership comparison and
  group/user attribute reports
"""

__version__ = "0.1.0"
