"""Extension points wrapped around each collected run plan."""

from __future__ import annotations

from bm_collector.models import RunPlan


class CollectorHooks:
    """Hooks invoked by the collector; the base implementation does nothing.

    ``before_run`` is where data-directory cleanliness checks and updates
    belong, ``after_run`` is where committing and pushing new results belong.
    An exception from either hook propagates out of ``Collector.run``. When
    it is a ``RunError`` or ``PostProcessError`` the batch records it against
    the plan and moves on; anything else aborts the batch.
    """

    def before_run(self, plan: RunPlan) -> None:
        return None

    def after_run(self, plan: RunPlan) -> None:
        return None
