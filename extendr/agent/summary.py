"""
Natural-language summary of what an agent run changed.
"""

# Error counts above this are left to the model's own explanation
MAX_REPORTED_ERRORS = 2

NO_CHANGES_MESSAGE = "No changes were made."
MAX_ITERATIONS_NOTE = "(Note: Reached maximum iterations. Some operations may be incomplete.)"


def summarize_side_effects(
    modified_files: list[str],
    build_triggered: bool,
    error_count: int = 0,
) -> str:
    """
    Describe side effects, e.g. "Changed 2 files. Built and started the preview."

    Returns an empty string when there is nothing to report.
    """
    parts = []
    if modified_files:
        count = len(modified_files)
        parts.append(f"Changed {count} file{'s' if count != 1 else ''}")
    if build_triggered:
        parts.append("Built and started the preview")
    if 0 < error_count <= MAX_REPORTED_ERRORS:
        parts.append(f"Encountered {error_count} issue(s) that may need attention")
    if not parts:
        return ""
    return ". ".join(parts) + "."


def compose_response(
    text: str,
    modified_files: list[str],
    build_triggered: bool,
    error_count: int = 0,
) -> str:
    """
    Combine the model's final text with the side-effect summary.

    The summary is added when the text is empty or when side effects
    occurred; an empty result falls back to NO_CHANGES_MESSAGE.
    """
    text = (text or "").strip()
    had_side_effects = bool(modified_files) or build_triggered
    if text and not had_side_effects:
        return text

    summary = summarize_side_effects(modified_files, build_triggered, error_count)
    if not text:
        return summary or NO_CHANGES_MESSAGE
    if not summary:
        return text
    return f"{text}\n\n{summary}"
