"""
Unsupported Storage Capabilities

Workflow, score, evaluation, trace and table operations that the memory
subsystem may call but the graph store does not implement. Each returns a
well-defined empty or default value so callers never have to special-case
this backend.
"""

from typing import Any

import structlog
from pydantic import Field

from threadgraph.models.memory import MemoryModel

logger = structlog.get_logger(__name__)


class WorkflowRuns(MemoryModel):
    runs: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0


class ScoresPage(MemoryModel):
    scores: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    page: int = 0
    per_page: int = 0
    has_more: bool = False


class UnsupportedCapabilities:
    """No-op implementations of the non-memory storage surface."""

    # Workflows

    async def persist_workflow_snapshot(
        self, workflow_name: str, run_id: str, snapshot: Any
    ) -> None:
        logger.debug(
            "Workflow snapshots not supported",
            workflow_name=workflow_name,
            run_id=run_id,
        )

    async def load_workflow_snapshot(self, workflow_name: str, run_id: str) -> None:
        logger.debug(
            "Workflow snapshots not supported",
            workflow_name=workflow_name,
            run_id=run_id,
        )
        return None

    async def update_workflow_results(
        self,
        workflow_name: str,
        run_id: str,
        step_id: str,
        result: Any,
        runtime_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger.debug(
            "Workflow results not supported",
            workflow_name=workflow_name,
            run_id=run_id,
            step_id=step_id,
        )
        return {}

    async def update_workflow_state(
        self, workflow_name: str, run_id: str, opts: dict[str, Any] | None = None
    ) -> None:
        logger.debug(
            "Workflow state not supported",
            workflow_name=workflow_name,
            run_id=run_id,
        )
        return None

    async def get_workflow_runs(self, **filters: Any) -> WorkflowRuns:
        logger.debug("Workflow runs not supported", filters=sorted(filters))
        return WorkflowRuns()

    async def get_workflow_run_by_id(
        self, run_id: str, workflow_name: str | None = None
    ) -> None:
        logger.debug("Workflow runs not supported", run_id=run_id)
        return None

    # Scores, evals, traces

    async def get_scores(self, **filters: Any) -> ScoresPage:
        logger.debug("Scores not supported", filters=sorted(filters))
        return ScoresPage()

    async def get_evals(self, **filters: Any) -> list[dict[str, Any]]:
        logger.debug("Evals not supported", filters=sorted(filters))
        return []

    async def get_traces(self, **filters: Any) -> list[dict[str, Any]]:
        logger.debug("Traces not supported", filters=sorted(filters))
        return []

    # Table operations (graph store has no tables)

    async def create_table(self, table_name: str, schema: dict[str, Any]) -> None:
        logger.debug("Table operations not supported", op="create", table=table_name)

    async def clear_table(self, table_name: str) -> None:
        logger.debug("Table operations not supported", op="clear", table=table_name)

    async def drop_table(self, table_name: str) -> None:
        logger.debug("Table operations not supported", op="drop", table=table_name)

    async def alter_table(
        self,
        table_name: str,
        schema: dict[str, Any],
        if_not_exists: list[str] | None = None,
    ) -> None:
        logger.debug("Table operations not supported", op="alter", table=table_name)

    async def insert(self, table_name: str, record: dict[str, Any]) -> None:
        logger.debug("Table operations not supported", op="insert", table=table_name)

    async def batch_insert(
        self, table_name: str, records: list[dict[str, Any]]
    ) -> None:
        logger.debug(
            "Table operations not supported",
            op="batch_insert",
            table=table_name,
            count=len(records),
        )

    async def load(self, table_name: str, keys: dict[str, Any]) -> None:
        logger.debug("Table operations not supported", op="load", table=table_name)
        return None
