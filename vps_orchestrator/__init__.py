"""
VPS orchestrator.

Installs software units on a single host, satisfying their declared
dependencies first, and ships the credential, backup and health-check
utilities that go with them.
"""

__version__ = "0.3.0"
