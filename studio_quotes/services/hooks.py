"""
Post-commit hooks.

Best-effort side effects (pricing re-sync, history log, cache
invalidation) are queued while the core transaction runs and executed
only after it commits. Each hook is guarded on its own: a failure is
logged and counted, never propagated.
"""
import logging

from studio_quotes.blueprints.metrics import post_commit_hook_failures_total
from studio_quotes.exceptions import ExternalSyncFailedError

logger = logging.getLogger(__name__)


class PostCommitHooks:
    """Ordered list of callables to run once the unit of work is committed."""

    def __init__(self):
        self._hooks = []

    def add(self, name, fn, *args, **kwargs):
        self._hooks.append((name, fn, args, kwargs))
        return self

    def __len__(self):
        return len(self._hooks)

    def run(self):
        """Run every hook; return the names of those that failed."""
        failed = []
        hooks, self._hooks = self._hooks, []
        for name, fn, args, kwargs in hooks:
            try:
                fn(*args, **kwargs)
            except Exception as e:
                error = e if isinstance(e, ExternalSyncFailedError) else ExternalSyncFailedError(str(e))
                logger.error(f"[HOOKS] '{name}' falló tras el commit [{error.code}]: {error.message}")
                post_commit_hook_failures_total.labels(hook=name).inc()
                failed.append(name)
        return failed
