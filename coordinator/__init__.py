from __future__ import annotations

"""Mutation-analysis coordinator package.

- Mutator registry: named mutators and groups, resolved to capability sets
- Worker protocol: one socket session per worker, tagged result records
- Config from environment, JSON logging
"""
