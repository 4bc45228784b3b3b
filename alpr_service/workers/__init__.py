"""Long-running worker processes.

- publisher: outbox claim/publish loop without the HTTP API
- consumer: reads ``lpr.events`` and hands each event to a handler

Any number of either may run against the same store and broker.
"""

from __future__ import annotations

__all__: list[str] = []
