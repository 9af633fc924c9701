"""
Agent session endpoints.

A session pairs an agent service with its own sandbox workspace. Chat
requests run synchronously in the server's worker threads, so a cancel
request for the same session can arrive while its chat is still running.
"""

import logging
import uuid

from fastapi import APIRouter, HTTPException, Request

from ...agent.messages import AgentState, Message
from ...providers import provider_info_list
from ...tracing import TracingContext
from ..schemas import (
    CancelResponse,
    ChatRequest,
    ChatResponse,
    CreateSessionRequest,
    ErrorResponse,
    FileListResponse,
    ProviderInfoResponse,
    ProviderListResponse,
    SessionInfo,
    ToolCallInfo,
    ToolResultInfo,
)
from ..store import AgentSession, SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _store(request: Request) -> SessionStore:
    return request.app.state.sessions


def _get_session(request: Request, session_id: str) -> AgentSession:
    session = _store(request).get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return session


def _session_info(session: AgentSession) -> SessionInfo:
    return SessionInfo(
        id=session.id,
        provider=session.service.provider.name,
        model=session.service.provider.model,
        created=session.created,
        busy=session.busy,
        message_count=len(session.history),
        file_count=len(session.sandbox.get_files()),
    )


@router.get(
    "/v1/providers",
    response_model=ProviderListResponse,
    summary="List providers",
    description="List supported model providers with their default and known models.",
)
def list_providers() -> ProviderListResponse:
    return ProviderListResponse(
        data=[ProviderInfoResponse(**info.to_dict()) for info in provider_info_list()]
    )


@router.post(
    "/v1/sessions",
    response_model=SessionInfo,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    summary="Create session",
)
def create_session(request: Request, body: CreateSessionRequest) -> SessionInfo:
    """Create an agent session with its own workspace."""
    try:
        session = _store(request).create(
            provider=body.provider,
            model=body.model,
            api_key=body.api_key,
            files=body.files,
        )
    except ValueError as e:
        logger.warning(f"Session creation rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return _session_info(session)


@router.get(
    "/v1/sessions/{session_id}",
    response_model=SessionInfo,
    responses={404: {"model": ErrorResponse}},
    summary="Get session",
)
def get_session(request: Request, session_id: str) -> SessionInfo:
    return _session_info(_get_session(request, session_id))


@router.delete(
    "/v1/sessions/{session_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Delete session",
)
def delete_session(request: Request, session_id: str) -> None:
    """Cancel any running request, stop the preview, and drop the session."""
    if not _store(request).delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.post(
    "/v1/sessions/{session_id}/chat",
    response_model=ChatResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "A request is already running"},
    },
    summary="Send a message",
    description=(
        "Run the agent on a new user message. The agent may call tools "
        "against the session workspace before answering."
    ),
)
def chat(request: Request, session_id: str, body: ChatRequest) -> ChatResponse:
    session = _get_session(request, session_id)
    if not session.claim():
        raise HTTPException(
            status_code=409, detail=f"Session '{session_id}' is already processing a request"
        )

    execution_id = f"exec-{uuid.uuid4().hex[:8]}"
    logger.info("[%s] [%s] Processing message: %.100s", session_id, execution_id, body.message)

    tracing_context = TracingContext(execution_id=execution_id, session_id=session_id)
    tracing_context.start_trace(
        name="session_chat",
        input=body.message,
        metadata={"provider": session.service.provider.name, "model": session.service.provider.model},
    )
    session.service.tracing_context = tracing_context
    try:
        result = session.service.chat(body.message, session.history, session.sandbox)
    except Exception as e:
        logger.exception(f"[{session_id}] [{execution_id}] Agent run failed")
        tracing_context.end_trace(output=str(e), status="error")
        raise HTTPException(status_code=500, detail=f"Agent run failed: {e}")
    finally:
        session.service.tracing_context = None
        session.release()

    tracing_context.end_trace(
        output=result.response,
        status="success" if result.state == AgentState.DONE else result.state.value,
    )

    # Keep only the text turns; tool turns are not replayed to the model
    session.history.append(Message.user(body.message))
    session.history.append(Message.assistant(result.response))

    logger.info(
        "[%s] [%s] Completed: state=%s, %d tool call(s)",
        session_id,
        execution_id,
        result.state.value,
        len(result.tool_calls),
    )
    return ChatResponse(
        session_id=session_id,
        response=result.response,
        state=result.state.value,
        iterations=result.iterations,
        tool_calls=[
            ToolCallInfo(id=call.id, name=call.name, arguments=call.arguments)
            for call in result.tool_calls
        ],
        tool_results=[
            ToolResultInfo(
                tool_call_id=r.tool_call_id,
                name=r.name,
                success=r.success,
                content=r.content,
                error=r.error,
            )
            for r in result.tool_results
        ],
        modified_files=list(result.modified_files),
        build_triggered=result.build_triggered,
        errors=list(result.errors),
    )


@router.post(
    "/v1/sessions/{session_id}/cancel",
    response_model=CancelResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Cancel the running request",
)
def cancel(request: Request, session_id: str) -> CancelResponse:
    """Signal the session's running request to stop; a no-op when idle."""
    session = _get_session(request, session_id)
    return CancelResponse(session_id=session_id, cancelled=session.request_cancel())


@router.get(
    "/v1/sessions/{session_id}/files",
    response_model=FileListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List workspace files",
)
def list_files(request: Request, session_id: str) -> FileListResponse:
    session = _get_session(request, session_id)
    return FileListResponse(session_id=session_id, files=sorted(session.sandbox.get_files()))
