#!/usr/bin/env python3
"""
Extendr Interactive CLI

A command-line interface for building Chrome extensions with the agent
in a local workspace directory.
"""

import argparse
import json
import logging
import os
import signal
import sys
import threading
from dataclasses import replace
from typing import Optional

from .agent.loop import ENV_API_KEYS, AgentService, create_service_from_env
from .agent.messages import AgentState, Message, ToolCall, ToolResult
from .config import LOG_FORMAT, get_config
from .models import AppConfig, ProviderType
from .providers import create_provider
from .sandbox import LocalSandbox
from .tools.definitions import TOOL_DEFINITIONS

# Set while a request is running; the first Ctrl+C cancels it
_active_service: Optional[AgentService] = None
_cancel_requested = threading.Event()

logger = logging.getLogger(__name__)


def _signal_handler(signum: int, frame) -> None:
    """First Ctrl+C cancels the running request, the second exits."""
    service = _active_service
    if service is None:
        raise KeyboardInterrupt
    if _cancel_requested.is_set():
        logger.debug("Force exit requested")
        print("\n\nExiting.")
        service.cancel()
        sys.exit(130)
    logger.debug("Cancellation requested from keyboard")
    _cancel_requested.set()
    service.cancel()
    print("\n\nCancelling... (press Ctrl+C again to exit)")


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Configure logging based on verbosity level."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_banner() -> None:
    """Print the welcome banner."""
    banner = """
╔════════════════════════════════════════════════════════════════╗
║                       Extendr Interactive                       ║
║                                                                 ║
║  Build and preview Chrome extensions with a tool-calling agent ║
╚════════════════════════════════════════════════════════════════╝

Available commands:
  /help     - Show this help message
  /tools    - List available tools
  /files    - List files in the workspace
  /logs     - Show the latest build and preview logs
  /clear    - Clear conversation history
  /quit     - Exit the CLI

Describe the extension you want, or the change to make.
"""
    print(banner)


def print_tools() -> None:
    """Print available tools."""
    print("\nAvailable Tools:")
    print("─" * 64)
    for i, tool in enumerate(TOOL_DEFINITIONS, start=1):
        summary = tool.description.split("\n", 1)[0].rstrip(".")
        print(f"{i:2}. {tool.name.value.ljust(24)} - {summary}")
    print()


def print_files(sandbox: LocalSandbox) -> None:
    files = sorted(sandbox.get_files())
    if not files:
        print("\nWorkspace is empty.\n")
        return
    print(f"\nFiles in {sandbox.root}:")
    for path in files:
        print(f"  {path}")
    print()


def print_logs(sandbox: LocalSandbox, limit: int = 50) -> None:
    logs = sandbox.get_logs()
    if not logs:
        print("\nNo logs yet.\n")
        return
    print()
    for line in logs[-limit:]:
        print(line)
    print()


def _print_tool_call(call: ToolCall) -> None:
    target = call.arguments.get("file_path") or call.arguments.get("command") or ""
    print(f"  → {call.name} {target}".rstrip())


def _print_tool_result(result: ToolResult) -> None:
    if result.success:
        print(f"  ✓ {result.name}")
    else:
        print(f"  ✗ {result.name}: {result.error}")


def _key_from_env(provider_type: ProviderType) -> str:
    for env_var, env_type in ENV_API_KEYS:
        if env_type == provider_type:
            key = os.environ.get(env_var, "").strip().strip("\"'")
            if key:
                return key
    return ""


def build_service(
    app_config: AppConfig,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    show_progress: bool = True,
) -> Optional[AgentService]:
    """
    Create the agent service for the CLI.

    The configured provider is used when it has credentials; otherwise the
    key comes from the vendor's environment variable, and without
    ``provider`` the first key found in the environment picks the vendor.
    """
    observers = {}
    if show_progress:
        observers = {"on_tool_call": _print_tool_call, "on_tool_result": _print_tool_result}

    provider_config = app_config.provider
    if provider:
        provider_type = ProviderType(provider.strip().lower())
        if provider_type != provider_config.type:
            provider_config = replace(provider_config, type=provider_type, api_key="", model="")
    provider_config = provider_config.with_overrides(model=model)

    if not provider_config.api_key:
        provider_config = provider_config.with_overrides(
            api_key=_key_from_env(provider_config.type)
        )

    service = AgentService(create_provider(provider_config), app_config.agent, **observers)
    if service.is_configured():
        return service
    if provider:
        return None
    return create_service_from_env(app_config.agent, model=model or "", **observers)


class InteractiveCLI:
    """Interactive CLI for Extendr."""

    def __init__(self, service: AgentService, sandbox: LocalSandbox, verbose: bool = False):
        """Initialize the CLI."""
        self.service = service
        self.sandbox = sandbox
        self.verbose = verbose
        self.history: list[Message] = []

    def clear_history(self) -> None:
        """Clear the conversation history."""
        self.history = []
        print("\nConversation history cleared.\n")

    def process_query(self, query: str) -> None:
        """Run one request and print the response."""
        global _active_service

        print("\n" + "─" * 70)
        print(f"Working with {self.service.provider_name()} ({self.service.provider.model})...")
        print("─" * 70 + "\n")

        _cancel_requested.clear()
        self.service.reset()
        _active_service = self.service
        try:
            result = self.service.chat(query, self.history, self.sandbox)
        except Exception as e:
            print(f"\nError: {e}\n")
            if self.verbose:
                import traceback

                traceback.print_exc()
            return
        finally:
            _active_service = None

        self.history.append(Message.user(query))
        self.history.append(Message.assistant(result.response))

        print("\n" + "═" * 70)
        print(result.response)
        print("═" * 70)
        if result.modified_files:
            print("Modified: " + ", ".join(result.modified_files))
        if result.state != AgentState.DONE:
            print(f"(Stopped: {result.state.value})")
        print(
            f"({result.iterations} iteration{'s' if result.iterations != 1 else ''}, "
            f"{len(result.tool_calls)} tool call{'s' if len(result.tool_calls) != 1 else ''})\n"
        )

    def run(self) -> None:
        """Run the interactive CLI loop."""
        print_banner()

        while True:
            try:
                user_input = input(">>> ").strip()

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    command = user_input.lower()

                    if command in ("/quit", "/exit", "/q"):
                        print("\nGoodbye!\n")
                        break
                    elif command in ("/help", "/h", "/?"):
                        print_banner()
                    elif command == "/tools":
                        print_tools()
                    elif command == "/files":
                        print_files(self.sandbox)
                    elif command == "/logs":
                        print_logs(self.sandbox)
                    elif command == "/clear":
                        self.clear_history()
                    else:
                        print(f"\nUnknown command: {user_input}")
                        print("Type /help for available commands.\n")
                else:
                    self.process_query(user_input)

            except KeyboardInterrupt:
                print("\n\nType /quit to exit.\n")
            except EOFError:
                print("\nGoodbye!\n")
                break


def main() -> None:
    """Main entry point."""
    global _active_service

    parser = argparse.ArgumentParser(
        description="Extendr Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Start interactive mode
  %(prog)s -v                               # Start with verbose logging
  %(prog)s -q "Build a tab counter popup"   # Run a single request
  %(prog)s --provider claude --workspace ./my-extension

API keys are read from GEMINI_API_KEY, OPENAI_API_KEY, CLAUDE_API_KEY,
ANTHROPIC_API_KEY, OPENROUTER_API_KEY, or DEEPSEEK_API_KEY.
""",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "-q",
        "--query",
        type=str,
        help="Run a single request and exit",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON (for scripting)",
    )

    parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Project directory the agent works in (default: sandbox.root from config)",
    )

    parser.add_argument(
        "--provider",
        type=str,
        choices=[t.value for t in ProviderType],
        default=None,
        help="Model provider (default: configured provider or first API key found)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model name (default: provider default)",
    )

    args = parser.parse_args()

    app_config = get_config()
    setup_logging(args.verbose, app_config.log_level)

    service = build_service(
        app_config,
        provider=args.provider,
        model=args.model,
        show_progress=not args.json,
    )
    if service is None:
        print(
            "No API key found. Set one of GEMINI_API_KEY, OPENAI_API_KEY, CLAUDE_API_KEY, "
            "OPENROUTER_API_KEY, or DEEPSEEK_API_KEY.",
            file=sys.stderr,
        )
        sys.exit(2)

    root = args.workspace or app_config.sandbox.root
    sandbox = LocalSandbox(root, replace(app_config.sandbox, root=root))

    signal.signal(signal.SIGINT, _signal_handler)

    try:
        with sandbox:
            if args.query:
                service.reset()
                _active_service = service
                try:
                    result = service.chat(args.query, [], sandbox)
                finally:
                    _active_service = None

                if args.json:
                    output = {"query": args.query, **result.to_dict()}
                    print(json.dumps(output, indent=2))
                else:
                    print(result.response)
                if result.state == AgentState.ERROR:
                    sys.exit(1)
            else:
                InteractiveCLI(service, sandbox, verbose=args.verbose).run()
    finally:
        service.close()


if __name__ == "__main__":
    main()
