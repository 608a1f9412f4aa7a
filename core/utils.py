import json
import logging
import re
from typing import Any, Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Model replies such as "No tasks added" or "Task complete" are not tasks
NO_TASK_PATTERN = re.compile(
    r"^No( (new|further|additional|extra|other))? tasks? (is )?"
    r"(required|needed|added|created|inputted).*$",
    re.IGNORECASE | re.DOTALL,
)
TASK_COMPLETE_PATTERN = re.compile(
    r"^Task (complete|completed|finished|done|over|success).*",
    re.IGNORECASE | re.DOTALL,
)
DO_NOTHING_PATTERN = re.compile(r"^(\s*|Do nothing(\s.*)?)$", re.IGNORECASE | re.DOTALL)

TASK_PREFIX_PATTERN = re.compile(
    r"^(Task(?![a-z])\s*\d*\s*[.:)-]?\s*|-?\d+\s*[.:)-]?\s*|[-*•]\s+)",
    re.IGNORECASE,
)


def clean_json_response(content: str) -> str:
    """
    Clean JSON response from LLM by removing markdown code blocks.

    Args:
        content: The raw string response from LLM

    Returns:
        Cleaned string containing just the JSON content
    """
    # Remove markdown code blocks
    pattern = r"```(?:json)?\s*(.*?)\s*```"
    match = re.search(pattern, content, re.DOTALL)
    if match:
        return match.group(1)

    # Also handle case where it might be wrapped in just ```
    return content.strip()


def balanced_spans(text: str, open_char: str = "[", close_char: str = "]") -> Iterator[str]:
    """
    Yield every bracket-balanced substring starting at an ``open_char``.

    Brackets inside double-quoted strings are ignored, so ``["a [b]", "c"]``
    comes out whole. Candidates are yielded in order of their opening bracket.
    """
    start = text.find(open_char)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == open_char:
                depth += 1
            elif char == close_char:
                depth -= 1
                if depth == 0:
                    yield text[start:index + 1]
                    break
        start = text.find(open_char, start + 1)


def safe_parse_json(text: str, default: Any = None) -> Any:
    """Parse JSON out of a model reply, tolerating fences and chatter around it."""
    if not text or not isinstance(text, str):
        return default

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    cleaned = clean_json_response(text)
    if cleaned != text.strip():
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            pass

    for open_char, close_char in (("[", "]"), ("{", "}")):
        for span in balanced_spans(cleaned, open_char, close_char):
            try:
                return json.loads(span)
            except json.JSONDecodeError:
                continue

    logger.debug("Failed to parse JSON from: %.200s", text)
    return default


def is_array_of_type(value: Any, expected_type: type) -> bool:
    """Check whether value is a list whose items are all of expected_type."""
    return isinstance(value, list) and all(isinstance(item, expected_type) for item in value)


def extract_array(text: str) -> Optional[List[str]]:
    """Return the first top-level JSON array of strings found in text, if any."""
    for span in balanced_spans(text):
        try:
            parsed = json.loads(span)
        except json.JSONDecodeError:
            continue
        if is_array_of_type(parsed, str):
            return parsed
    return None


def remove_task_prefix(task: str) -> str:
    """Strip leading ordinals such as "Task 1:", "2." or "- " from a task."""
    return TASK_PREFIX_PATTERN.sub("", task, count=1)


def real_tasks_filter(task: str) -> bool:
    """False for "No new tasks needed", "Task complete", "Do nothing" and blanks."""
    return not (
        NO_TASK_PATTERN.match(task)
        or TASK_COMPLETE_PATTERN.match(task)
        or DO_NOTHING_PATTERN.match(task)
    )


def _candidate_lines(text: str) -> List[str]:
    lines = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("[") or line.endswith("]"):
            continue
        lowered = line.lower()
        if "objective" in lowered or "goal" in lowered:
            continue
        lines.append(line)
    return lines


def _candidate_tasks(text: str) -> List[str]:
    cleaned = text.strip()

    if cleaned.startswith("[") and cleaned.endswith("]"):
        parsed = safe_parse_json(cleaned, None)
        if isinstance(parsed, list):
            return [item for item in parsed if isinstance(item, str)]

    extracted = extract_array(cleaned)
    if extracted is not None:
        return extracted

    lines = _candidate_lines(cleaned)
    if lines:
        logger.debug("No JSON array in model output, using %d line(s)", len(lines))
    return lines


def extract_tasks(text: str, completed_tasks: Optional[Sequence[str]] = None) -> List[str]:
    """
    Turn freeform model output into an ordered list of tasks.

    Tries a bare JSON array first, then the first JSON array embedded in the
    text, then one task per line. Completed tasks and filler such as
    "No new tasks needed" are dropped and ordinal prefixes are removed.
    Never raises.
    """
    completed = set(completed_tasks or [])
    try:
        tasks = []
        for candidate in _candidate_tasks(text or ""):
            if candidate in completed or not real_tasks_filter(candidate):
                continue
            task = remove_task_prefix(candidate).strip()
            if not task or task in completed:
                continue
            tasks.append(task)
        return tasks
    except Exception:
        logger.exception("Task extraction failed")
        return []
