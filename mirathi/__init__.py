"""
Mirathi Readiness Package
=========================

Succession filing readiness engine.

This package contains:
    - readiness/: Risk flags, succession context, scoring and the
      readiness assessment aggregate
    - audit/: Hash-chained audit log of readiness events
    - db/: PostgreSQL persistence for assessments and risk flags

Author: Mirathi Team
Version: 1.0.0
"""

__version__ = "1.0.0"
