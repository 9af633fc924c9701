"""
Request-scoped tracing for agent runs.

A ``TracingContext`` owns one Langfuse trace (a root span). The agent loop
records a generation per provider call and a span per tool batch under it,
linked to the root through an explicit ``TraceContext``.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Generator, Optional

from langfuse.types import TraceContext

from .client import get_tracing_client

logger = logging.getLogger(__name__)

# Longest string recorded as observation input or output
MAX_RECORDED_CHARS = 2000


def clip(value: Any, limit: int = MAX_RECORDED_CHARS) -> Any:
    """Shorten long strings before they are sent to Langfuse."""
    if isinstance(value, str) and len(value) > limit:
        return value[:limit] + "..."
    return value


class Observation:
    """One span or generation; a no-op when tracing is disabled."""

    def __init__(self, handle: Any = None):
        self._handle = handle
        self._started = time.monotonic()
        self._status = "success"
        self._output: Any = None
        self._usage: Optional[dict] = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status

    def set_usage(self, usage: Optional[dict]) -> None:
        if usage:
            self._usage = {
                "input": usage.get("prompt_tokens", 0),
                "output": usage.get("completion_tokens", 0),
                "total": usage.get("total_tokens", 0),
            }

    def _finish(self) -> None:
        if self._handle is None:
            return
        update: dict[str, Any] = {
            "metadata": {
                "status": self._status,
                "duration_ms": round((time.monotonic() - self._started) * 1000, 2),
            }
        }
        if self._output is not None:
            update["output"] = self._output
        if self._usage:
            update["usage_details"] = self._usage
        if self._status == "error":
            update["level"] = "ERROR"
        try:
            self._handle.update(**update)
        except Exception as e:
            logger.warning(f"Failed to update observation: {e}")


class TracingContext:
    """Trace for one agent request."""

    def __init__(self, execution_id: str, session_id: Optional[str] = None):
        self.execution_id = execution_id
        self.session_id = session_id
        self._root_cm: Any = None
        self._root: Optional[Observation] = None
        self._trace_context: Optional[TraceContext] = None

    @property
    def enabled(self) -> bool:
        client = get_tracing_client()
        return client is not None and client.enabled

    def start_trace(
        self,
        name: str = "agent_request",
        input: Any = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Open the root span for this request."""
        if not self.enabled:
            return
        client = get_tracing_client().client
        try:
            self._root_cm = client.start_as_current_observation(
                as_type="span",
                name=name,
                input=clip(input),
                metadata={"execution_id": self.execution_id, **(metadata or {})},
            )
            handle = self._root_cm.__enter__()
            handle.update_trace(session_id=self.session_id)
            self._root = Observation(handle)
            self._trace_context = TraceContext(
                trace_id=handle.trace_id, parent_span_id=handle.id
            )
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to start trace: {e}")
            self._root_cm = None
            self._root = None

    def end_trace(self, output: Any = None, status: str = "success") -> None:
        """Close the root span and flush pending events."""
        if self._root is None:
            return
        self._root.set_output(clip(output))
        self._root.set_status(status)
        self._root._finish()
        try:
            self._root_cm.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to end trace: {e}")
        self._root = None
        self._root_cm = None
        get_tracing_client().flush()

    @contextmanager
    def _observe(self, **kwargs) -> Generator[Observation, None, None]:
        if self._trace_context is None or not self.enabled:
            yield Observation()
            return

        client = get_tracing_client().client
        cm = None
        observation = Observation()
        try:
            cm = client.start_as_current_observation(trace_context=self._trace_context, **kwargs)
            observation = Observation(cm.__enter__())
        except Exception as e:
            logger.warning(f"Failed to start observation '{kwargs.get('name')}': {e}")
            cm = None
        try:
            yield observation
        finally:
            observation._finish()
            if cm is not None:
                try:
                    cm.__exit__(None, None, None)
                except Exception as e:
                    logger.warning(f"Failed to end observation '{kwargs.get('name')}': {e}")

    def span(self, name: str, input: Any = None, metadata: Optional[dict] = None):
        """Context manager recording a span under the request trace."""
        return self._observe(as_type="span", name=name, input=input, metadata=metadata)

    def generation(
        self,
        name: str,
        model: str,
        input: Any = None,
        model_parameters: Optional[dict] = None,
    ):
        """Context manager recording an LLM generation under the request trace."""
        return self._observe(
            as_type="generation",
            name=name,
            model=model,
            input=input,
            model_parameters=model_parameters,
        )
