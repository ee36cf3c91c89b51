"""Conversation-aware prompt building.

Prior attempts at fixing a script are rendered into the prompt so the model
stops proposing the same failed fix. The builders are pure functions of their
arguments; the only mutable state is the bounded ``ConversationHistory`` that a
caller owns for the length of a session.
"""

from __future__ import annotations

import json
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Deque, Iterable, Iterator, Optional, Sequence

from codebuddy.utils.log import get_logger

logger = get_logger()

MAX_HISTORY = 5

CONTEXT_HEADER = "## Previous Attempts (learn from these!):"
ATTEMPT_DIVIDER = "---"
CONTEXT_CLOSING = (
    "The script is STILL failing. Learn from previous attempts and try a DIFFERENT approach."
)
DIFFERENT_APPROACH_DIRECTIVE = (
    "IMPORTANT: The previous approaches did NOT work. Try a COMPLETELY DIFFERENT solution. "
    "Consider:\n"
    "- Different tools or commands\n"
    "- Alternative logic or approach\n"
    "- Checking different error conditions\n"
    "- Using different syntax or methods"
)
FINAL_INSTRUCTION = "Return only the executable script code, nothing else."


@dataclass(frozen=True)
class ConversationAttempt:
    """One round of (script tried, output observed, improvement returned)."""

    input_script: str
    observed_output: str
    improved_script: str
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationAttempt":
        # Accept the extension's short keys as well as our own.
        return cls(
            input_script=str(data.get("input_script", data.get("script", "")) or ""),
            observed_output=str(data.get("observed_output", data.get("output", "")) or ""),
            improved_script=str(data.get("improved_script", data.get("improved", "")) or ""),
            timestamp=float(data.get("timestamp") or time.time()),
        )


class ConversationHistory:
    """Bounded FIFO of recent attempts; the oldest attempt is evicted first."""

    def __init__(
        self, attempts: Iterable[ConversationAttempt] = (), max_size: int = MAX_HISTORY
    ) -> None:
        self._attempts: Deque[ConversationAttempt] = deque(attempts, maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._attempts.maxlen or MAX_HISTORY

    def record(
        self,
        input_script: str,
        observed_output: str,
        improved_script: str,
        timestamp: Optional[float] = None,
    ) -> ConversationAttempt:
        attempt = ConversationAttempt(
            input_script=input_script or "",
            observed_output=observed_output or "",
            improved_script=improved_script or "",
            timestamp=timestamp if timestamp is not None else time.time(),
        )
        self._attempts.append(attempt)
        logger.debug(
            "[conversation] Recorded attempt",
            extra={"history_size": len(self._attempts)},
        )
        return attempt

    def attempts(self) -> tuple[ConversationAttempt, ...]:
        return tuple(self._attempts)

    def clear(self) -> None:
        self._attempts.clear()

    def __len__(self) -> int:
        return len(self._attempts)

    def __iter__(self) -> Iterator[ConversationAttempt]:
        return iter(tuple(self._attempts))

    @classmethod
    def load(cls, path: Path, max_size: int = MAX_HISTORY) -> "ConversationHistory":
        """Load a history file; a missing file yields an empty history."""
        if not path.exists():
            return cls(max_size=max_size)
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError(f"History file {path} must contain a JSON list")
        return cls((ConversationAttempt.from_dict(item) for item in raw), max_size=max_size)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [asdict(attempt) for attempt in self._attempts]
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def build_conversation_context(history: Sequence[ConversationAttempt]) -> str:
    """Render prior attempts as a prompt section.

    An empty history renders as the empty string so that a first-attempt
    prompt carries no trace of the history machinery.
    """
    if not history:
        return ""

    lines = ["", "", CONTEXT_HEADER]
    for index, attempt in enumerate(history, start=1):
        lines.extend(
            [
                "",
                f"Attempt {index}:",
                "Script tried:",
                attempt.input_script,
                "Result/Error:",
                attempt.observed_output,
                "Improvement made:",
                attempt.improved_script,
                ATTEMPT_DIVIDER,
            ]
        )
    lines.extend(["", CONTEXT_CLOSING, ""])
    return "\n".join(lines)


def build_prompt_with_context(
    output: str,
    script: Optional[str],
    history: Sequence[ConversationAttempt] = (),
) -> str:
    """Compose the full analysis prompt for the current attempt."""
    has_history = len(history) > 0
    if has_history:
        situation = f"is STILL failing after {len(history)} attempts"
    else:
        situation = "may have failed or produced unexpected output"

    sections = [
        f"You are helping debug a command or script that {situation}.",
        build_conversation_context(history),
        "",
        "## Current Attempt:",
    ]
    if script:
        sections.extend(["Current Script:", script, ""])
    sections.extend(["Latest Output/Error:", output, ""])
    if has_history:
        sections.extend([DIFFERENT_APPROACH_DIRECTIVE, ""])
    sections.extend(
        [
            "Provide ONLY the improved script with no explanation, ready to run immediately.",
            "Focus on:",
            "- Fixing any errors shown in the output",
            "- Adding better error handling",
            "- Improving efficiency and reliability",
            "- Making the script more robust",
        ]
    )
    if has_history:
        sections.append("- Using a DIFFERENT approach than previous attempts")
    sections.extend(["", FINAL_INSTRUCTION])
    return "\n".join(sections)


def build_improvement_prompt(script: str) -> str:
    """Prompt for improving a script that has no failing output attached."""
    return "\n".join(
        [
            "Improve the following command or script for better error handling, "
            "efficiency, and reliability:",
            "",
            script,
            "",
            "Provide ONLY the improved script with no explanation, ready to run immediately.",
            "Focus on:",
            "- Adding comprehensive error handling",
            "- Improving performance and efficiency",
            "- Making the script more maintainable",
            "- Adding necessary validation",
            "- Ensuring idempotency where appropriate",
            "",
            FINAL_INSTRUCTION,
        ]
    )
