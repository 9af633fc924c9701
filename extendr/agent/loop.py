"""
Agent orchestration loop.

``AgentService.chat`` drives one user request to completion: it sends the
conversation to the provider, executes any tool calls the model asks for
against the sandbox session, feeds the results back as tool turns, and
repeats until the model answers in plain text, a budget runs out, or the
request is cancelled.

Per-iteration flow:
    1. Stop if the cancellation token has fired
    2. Stop if the iteration budget is spent
    3. Call the provider (in a worker thread, observing token and timeout)
    4. Error: count it, stop after ``max_consecutive_errors`` in a row
    5. Text: compose the final response and stop
    6. Tool calls: record the assistant turn, execute the batch, append one
       tool turn per result, fold side effects, loop
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Optional

from ..models import AgentConfig, ProviderConfig, ProviderType
from ..providers import BaseProvider, create_provider
from ..sandbox import SandboxSession
from ..tools.definitions import TOOL_DEFINITIONS
from ..tools.executor import ToolExecutor, get_modified_files, was_build_triggered
from ..tracing import TracingContext
from .cancellation import CancellationToken, OperationCancelled, OperationTimedOut, wait_for
from .messages import (
    AgentState,
    AIServiceResult,
    Message,
    ProviderResponse,
    ResponseType,
    ResultAccumulator,
    ToolCall,
    ToolResult,
)
from .summary import MAX_ITERATIONS_NOTE, compose_response
from .system_prompt import get_system_prompt

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Operation cancelled."
MAX_ITERATIONS_ERROR = "Maximum tool iterations reached"

# Checked in order by create_service_from_env
ENV_API_KEYS: tuple[tuple[str, ProviderType], ...] = (
    ("GEMINI_API_KEY", ProviderType.GEMINI),
    ("OPENAI_API_KEY", ProviderType.OPENAI),
    ("CLAUDE_API_KEY", ProviderType.CLAUDE),
    ("ANTHROPIC_API_KEY", ProviderType.CLAUDE),
    ("OPENROUTER_API_KEY", ProviderType.OPENROUTER),
    ("DEEPSEEK_API_KEY", ProviderType.DEEPSEEK),
)

ToolCallObserver = Callable[[ToolCall], None]
ToolResultObserver = Callable[[ToolResult], None]


class AgentService:
    """
    Drives the provider/tool conversation for one caller.

    The service keeps no conversation of its own between requests: callers
    pass the prior history into ``chat`` and receive an ``AIServiceResult``.
    The full transcript of the most recent request, tool turns included, is
    left in ``last_history``.
    """

    def __init__(
        self,
        provider: BaseProvider,
        config: Optional[AgentConfig] = None,
        system_prompt: Optional[str] = None,
        executor: Optional[ToolExecutor] = None,
        on_tool_call: Optional[ToolCallObserver] = None,
        on_tool_result: Optional[ToolResultObserver] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        """
        Initialize the service.

        Args:
            provider: Model provider adapter
            config: Budgets and timeouts (defaults to AgentConfig())
            system_prompt: Overrides the prompt built from config
            executor: Tool executor (defaults to one built from config)
            on_tool_call: Called with each tool call before its batch runs
            on_tool_result: Called with each tool result after its batch
            tracing_context: Request trace to record generations and spans under
        """
        self.provider = provider
        self.config = config or AgentConfig()
        self.system_prompt = system_prompt or get_system_prompt(
            short=self.config.system_prompt_short,
            custom_instructions=self.config.custom_instructions or None,
        )
        self.executor = executor or ToolExecutor(
            max_workers=self.config.max_tool_workers,
            serialize_same_path=self.config.serialize_same_path,
            batch_timeout=self.config.tool_batch_timeout,
        )
        self.on_tool_call = on_tool_call
        self.on_tool_result = on_tool_result
        self.tracing_context = tracing_context
        self.tools = list(TOOL_DEFINITIONS)
        self.last_history: list[Message] = []
        self.state = AgentState.DONE
        self._token = CancellationToken()
        self._provider_calls = 0

    def is_configured(self) -> bool:
        return self.provider.is_configured()

    def provider_name(self) -> str:
        return self.provider.display_name

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    def cancel(self) -> None:
        """Ask the running request to stop at its next wait point."""
        logger.info("Cancellation requested")
        self._token.cancel()

    def reset(self) -> None:
        """Clear a pending cancel; callers reset before starting a new request."""
        self._token.reset()

    def close(self) -> None:
        self.provider.close()

    def chat(
        self,
        user_message: str,
        history: Optional[list[Message]] = None,
        session: Optional[SandboxSession] = None,
    ) -> AIServiceResult:
        """
        Run one request to completion.

        A cancel that is still pending from an earlier request stops this
        one at once; call reset() first to start clean.

        Args:
            user_message: The user's new message
            history: Prior turns, oldest first; not modified
            session: Sandbox the tools operate on

        Returns:
            AIServiceResult in state DONE, CANCELLED, or ERROR
        """
        if session is None:
            raise ValueError("A sandbox session is required")

        self.state = AgentState.RUNNING
        self._provider_calls = 0
        messages = list(history or [])
        messages.append(Message.user(user_message))
        self.last_history = messages

        logger.debug("Starting agent run: %.100s", user_message)
        result = self._run_loop(messages, session)
        self.state = result.state
        self._log_trace_summary(result)
        return result

    def _run_loop(self, messages: list[Message], session: SandboxSession) -> AIServiceResult:
        acc = ResultAccumulator()
        iterations = 0
        consecutive_errors = 0
        max_iterations = self.config.max_iterations
        max_errors = self.config.max_consecutive_errors

        while True:
            if self._token.cancelled:
                return acc.freeze(CANCELLED_MESSAGE, AgentState.CANCELLED, iterations)

            if iterations >= max_iterations:
                logger.warning("Max iterations (%d) reached", max_iterations)
                acc.errors.append(MAX_ITERATIONS_ERROR)
                response = compose_response(
                    "", acc.modified_files, acc.build_triggered, len(acc.errors)
                )
                return acc.freeze(
                    f"{response}\n\n{MAX_ITERATIONS_NOTE}", AgentState.DONE, iterations
                )

            iterations += 1
            self.state = AgentState.AWAITING_PROVIDER
            logger.debug("Iteration %d: calling %s", iterations, self.provider.display_name)

            try:
                response = self._call_provider(messages, iterations)
            except OperationCancelled:
                logger.info("Provider call abandoned after cancellation")
                return acc.freeze(CANCELLED_MESSAGE, AgentState.CANCELLED, iterations)
            except OperationTimedOut as e:
                response = ProviderResponse.failure(f"Provider call timed out: {e}")
            except Exception as e:
                logger.exception("Unexpected error during iteration %d", iterations)
                response = ProviderResponse.failure(str(e) or type(e).__name__)

            # A reply that lands after cancel() is discarded unrecorded
            if self._token.cancelled:
                return acc.freeze(CANCELLED_MESSAGE, AgentState.CANCELLED, iterations)

            if response.type == ResponseType.TEXT:
                messages.append(Message.assistant(response.content))
                final = compose_response(
                    response.content,
                    acc.modified_files,
                    acc.build_triggered,
                    len(acc.errors),
                )
                return acc.freeze(final, AgentState.DONE, iterations)

            error = response.error
            if response.type == ResponseType.TOOL_CALLS:
                try:
                    self._run_tools(response, messages, session, acc, iterations)
                except Exception as e:
                    logger.exception("Unexpected error during iteration %d", iterations)
                    error = str(e) or type(e).__name__
                else:
                    consecutive_errors = 0
                    continue

            consecutive_errors += 1
            acc.errors.append(error)
            logger.error("Provider error %d/%d: %s", consecutive_errors, max_errors, error)
            if consecutive_errors >= max_errors:
                return acc.freeze(
                    f"I encountered {consecutive_errors} consecutive errors. "
                    f"Stopping to prevent infinite loops. Last error: {error}",
                    AgentState.ERROR,
                    iterations,
                )

    def _call_provider(self, messages: list[Message], iteration: int) -> ProviderResponse:
        """Call the provider in a worker thread so the wait can observe the token."""
        self._provider_calls += 1
        snapshot = list(messages)
        timeout = self.config.provider_timeout or None

        def send() -> ProviderResponse:
            return self.provider.chat(snapshot, self.tools, self.system_prompt)

        if self.tracing_context is None:
            return self._wait_provider(send, timeout)

        with self.tracing_context.generation(
            name=f"provider_call_{iteration}",
            model=self.provider.model,
            input={"messages": len(snapshot), "last": snapshot[-1].content[:500]},
            model_parameters={
                "max_tokens": self.provider.max_tokens,
                "temperature": self.provider.temperature,
            },
        ) as generation:
            try:
                response = self._wait_provider(send, timeout)
            except Exception:
                generation.set_status("error")
                raise
            if response.type == ResponseType.ERROR:
                generation.set_status("error")
                generation.set_output(response.error)
            elif response.tool_calls:
                generation.set_output(
                    [{"name": c.name, "arguments": c.arguments} for c in response.tool_calls]
                )
            else:
                generation.set_output(response.content)
            generation.set_usage(response.usage)
            return response

    def _wait_provider(self, send, timeout: Optional[float]) -> ProviderResponse:
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="provider")
        try:
            return wait_for(pool.submit(send), self._token, timeout)
        finally:
            # An abandoned call finishes in the background; its reply is dropped
            pool.shutdown(wait=False)

    def _run_tools(
        self,
        response: ProviderResponse,
        messages: list[Message],
        session: SandboxSession,
        acc: ResultAccumulator,
        iteration: int,
    ) -> None:
        calls = list(response.tool_calls)
        for call in calls:
            logger.info("Tool call: %s %s", call.name, call.arguments)
            self._notify(self.on_tool_call, call)

        messages.append(Message.assistant(response.content, calls))
        acc.tool_calls.extend(calls)
        self.state = AgentState.EXECUTING_TOOLS

        try:
            results = self._execute_batch(calls, session, iteration)
        except Exception as e:
            # Every call still needs a result turn before the next request
            logger.exception("Tool batch %d failed", iteration)
            results = [ToolResult.failure(call, str(e) or type(e).__name__) for call in calls]

        for result in results:
            messages.append(Message.tool(result))
            acc.tool_results.append(result)
            if not result.success:
                acc.errors.append(f"{result.name}: {result.error}")

        acc.add_modified(get_modified_files(results))
        acc.build_triggered = acc.build_triggered or was_build_triggered(results)

        for result in results:
            self._notify(self.on_tool_result, result)

    def _execute_batch(
        self,
        calls: list[ToolCall],
        session: SandboxSession,
        iteration: int,
    ) -> list[ToolResult]:
        if self.tracing_context is None:
            return self.executor.execute_batch(calls, session, self._token)

        with self.tracing_context.span(
            name=f"tool_batch_{iteration}",
            input=[{"name": c.name, "arguments": c.arguments} for c in calls],
        ) as span:
            results = self.executor.execute_batch(calls, session, self._token)
            span.set_output([{"name": r.name, "success": r.success} for r in results])
            if not all(r.success for r in results):
                span.set_status("error")
            return results

    @staticmethod
    def _notify(observer, item) -> None:
        if observer is None:
            return
        try:
            observer(item)
        except Exception:
            logger.exception("Observer %r failed", observer)

    def _log_trace_summary(self, result: AIServiceResult) -> None:
        logger.info(
            "Agent run finished: state=%s iterations=%d provider_calls=%d tools=%d "
            "modified=%d build=%s errors=%d",
            result.state.value,
            result.iterations,
            self._provider_calls,
            len(result.tool_calls),
            len(result.modified_files),
            result.build_triggered,
            len(result.errors),
        )
        for call, tool_result in zip(result.tool_calls, result.tool_results):
            logger.debug(
                "  %s -> %s", call.name, "ok" if tool_result.success else tool_result.error
            )


def create_agent_service(
    provider_type,
    api_key: str,
    model: str = "",
    config: Optional[AgentConfig] = None,
    provider_config: Optional[ProviderConfig] = None,
    **kwargs,
) -> AgentService:
    """
    Build an AgentService for the given vendor.

    Args:
        provider_type: ProviderType or its string value
        api_key: Vendor API key
        model: Model override; empty uses the provider default
        config: Agent budgets and timeouts
        provider_config: Base provider settings; type, key and model are overridden
        **kwargs: Forwarded to AgentService (observers, tracing_context, ...)
    """
    base = provider_config or ProviderConfig()
    provider_config = replace(
        base.with_overrides(model=model, api_key=api_key),
        type=ProviderType(provider_type),
    )
    return AgentService(create_provider(provider_config), config, **kwargs)


def create_service_from_env(
    config: Optional[AgentConfig] = None,
    model: str = "",
    **kwargs,
) -> Optional[AgentService]:
    """
    Build an AgentService from the first API key found in the environment.

    Returns None when no known key variable is set.
    """
    for env_var, provider_type in ENV_API_KEYS:
        api_key = os.environ.get(env_var, "").strip().strip("\"'")
        if api_key:
            logger.info("Using %s from %s", provider_type.value, env_var)
            return create_agent_service(provider_type, api_key, model, config, **kwargs)
    return None
