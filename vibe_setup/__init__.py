"""Vibe coding dev setup (Python-first, idempotent).

Core design goals:
- Every step checks before it applies; reruns are safe and fast
- One failing tool never blocks the rest of the run
- Dry-run reports what would change without touching the machine
- Machine catalogues are declarative YAML manifests
- Centralized logging to an append-only run log
"""

__all__ = []
