"""
Tool Executor - runs a batch of model-issued tool calls against a sandbox.

Calls fan out on a thread pool and fan back in before returning; the result
list always has one entry per call, in the order the calls were issued.
Calls in one batch that touch a common path are chained into one lane and
run in issue order, while independent lanes run concurrently.
"""

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Optional

from ..agent.cancellation import POLL_INTERVAL, CancellationToken
from ..agent.messages import ToolCall, ToolResult
from ..sandbox import SandboxSession
from . import handlers  # noqa: F401  registers every handler
from .definitions import ToolName
from .registry import ToolError, ToolRegistry

logger = logging.getLogger(__name__)

# Longest error message carried back to the model
MAX_ERROR_LENGTH = 500

# Arguments naming the files a call reads or writes
PATH_ARGUMENTS = ("file_path", "old_path", "new_path")


def _truncate(message: str) -> str:
    if len(message) > MAX_ERROR_LENGTH:
        return message[:MAX_ERROR_LENGTH] + "..."
    return message


def execute_tool(call: ToolCall, session: SandboxSession) -> ToolResult:
    """
    Execute a single tool call. Never raises.

    Args:
        call: The tool call to execute
        session: Sandbox the handler operates on

    Returns:
        A successful or failed ToolResult correlated to ``call.id``
    """
    name = ToolName.parse(call.name)
    handler = ToolRegistry.get(name) if name is not None else None
    if handler is None:
        logger.warning("Unknown tool requested: %s", call.name)
        return ToolResult(
            tool_call_id=call.id,
            name=call.name,
            content=f"Unknown tool: {call.name}",
            success=False,
            error=f'Tool "{call.name}" is not implemented',
        )

    if not isinstance(call.arguments, dict):
        return ToolResult.failure(call, "Tool arguments must be a JSON object")

    started = time.monotonic()
    try:
        output = handler(dict(call.arguments), session)
    except ToolError as e:
        logger.warning("Tool %s failed: %s", call.name, e)
        return ToolResult.failure(call, _truncate(str(e)))
    except Exception as e:
        logger.error("Tool %s raised %s: %s", call.name, type(e).__name__, e)
        return ToolResult.failure(call, _truncate(str(e) or type(e).__name__))

    logger.debug(
        "Tool %s (%s) completed in %.2fs",
        call.name,
        call.id,
        time.monotonic() - started,
    )
    return ToolResult(
        tool_call_id=call.id,
        name=call.name,
        content=output.content,
        success=True,
        affected_path=output.affected_path,
        build_triggered=output.build_triggered,
    )


def _touched_paths(call: ToolCall) -> set[str]:
    if not isinstance(call.arguments, dict):
        return set()
    paths = set()
    for key in PATH_ARGUMENTS:
        value = call.arguments.get(key)
        if isinstance(value, str) and value.strip():
            paths.add(value.strip().replace("\\", "/").lstrip("/").removeprefix("./"))
    return paths


def plan_lanes(tool_calls: list[ToolCall], serialize_same_path: bool = True) -> list[list[int]]:
    """
    Group call indexes into lanes that may run concurrently.

    Calls sharing a path end up in the same lane, ordered by issue index.
    """
    if not serialize_same_path:
        return [[i] for i in range(len(tool_calls))]

    lanes: list[tuple[set[str], list[int]]] = []
    for index, call in enumerate(tool_calls):
        paths = _touched_paths(call)
        merged_paths, merged_indexes = set(paths), [index]
        if paths:
            remaining = []
            for lane_paths, lane_indexes in lanes:
                if lane_paths & paths:
                    merged_paths |= lane_paths
                    merged_indexes.extend(lane_indexes)
                else:
                    remaining.append((lane_paths, lane_indexes))
            lanes = remaining
        lanes.append((merged_paths, sorted(merged_indexes)))

    return sorted((indexes for _, indexes in lanes), key=lambda lane: lane[0])


class ToolExecutor:
    """Concurrent, order-preserving batch executor."""

    def __init__(
        self,
        max_workers: int = 8,
        serialize_same_path: bool = True,
        batch_timeout: float = 0.0,
    ):
        """
        Args:
            max_workers: Upper bound on concurrently running lanes
            serialize_same_path: Chain calls that touch a common path
            batch_timeout: Seconds to wait for the batch; 0 waits indefinitely
        """
        self.max_workers = max(1, max_workers)
        self.serialize_same_path = serialize_same_path
        self.batch_timeout = batch_timeout

    def execute_batch(
        self,
        tool_calls: list[ToolCall],
        session: SandboxSession,
        token: Optional[CancellationToken] = None,
    ) -> list[ToolResult]:
        """
        Execute ``tool_calls`` concurrently and return results in input order.

        If ``token`` fires, calls that have not started are skipped and the
        batch waits for the running handlers so their real results are
        returned. If the batch timeout passes first, the unfinished calls
        receive failed results and their handlers finish in the background.
        """
        if not tool_calls:
            return []

        results: list[Optional[ToolResult]] = [None] * len(tool_calls)
        lanes = plan_lanes(tool_calls, self.serialize_same_path)

        def run_lane(indexes: list[int]) -> None:
            for index in indexes:
                if token is not None and token.cancelled:
                    return
                results[index] = execute_tool(tool_calls[index], session)

        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(lanes)),
            thread_name_prefix="tool",
        )
        timed_out: Optional[str] = None
        try:
            futures: list[Future] = [pool.submit(run_lane, lane) for lane in lanes]
            timed_out = self._await(futures)
        finally:
            pool.shutdown(wait=timed_out is None, cancel_futures=True)

        if timed_out:
            logger.warning("Tool batch interrupted: %s", timed_out)
            reason = timed_out
        elif token is not None and token.cancelled:
            skipped = sum(1 for result in results if result is None)
            if skipped:
                logger.info("Tool batch cancelled; skipped %d calls", skipped)
            reason = "Cancelled before completion"
        else:
            reason = "Tool did not complete"

        return [
            result if result is not None else ToolResult.failure(tool_calls[i], reason)
            for i, result in enumerate(list(results))
        ]

    def _await(self, futures: list[Future]) -> Optional[str]:
        """
        Wait for all lanes; return a reason string if the batch timed out.

        Cancellation does not cut the wait short: lanes check the token
        before each call, so they drain once their running handler returns.
        """
        deadline = time.monotonic() + self.batch_timeout if self.batch_timeout else None
        pending = set(futures)
        while pending:
            step = POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return f"Timed out after {self.batch_timeout}s"
                step = min(step, remaining)
            _, pending = wait(pending, timeout=step, return_when=FIRST_EXCEPTION)
        return None


_default_executor = ToolExecutor()


def execute_tool_calls(
    tool_calls: list[ToolCall],
    session: SandboxSession,
    token: Optional[CancellationToken] = None,
) -> list[ToolResult]:
    """Execute a batch with the default executor settings."""
    return _default_executor.execute_batch(tool_calls, session, token)


def get_modified_files(results: list[ToolResult]) -> list[str]:
    """Paths touched by successful results, deduplicated in first-seen order."""
    paths: list[str] = []
    for result in results:
        if result.success and result.affected_path and result.affected_path not in paths:
            paths.append(result.affected_path)
    return paths


def was_build_triggered(results: list[ToolResult]) -> bool:
    """Whether any successful result started a build."""
    return any(result.success and result.build_triggered for result in results)
