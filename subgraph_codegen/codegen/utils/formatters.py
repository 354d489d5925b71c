"""Code formatting utilities."""

from subgraph_codegen.errors import EmissionError

INDENT = "  "

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = set(_OPENERS.values())


def _scan(text, stack, lineno, state):
    """
    Track bracket depth over one line.

    state is None, "comment" (inside /* */) or "template" (inside a
    backtick literal); the state at the end of the line is returned.
    """
    i, n = 0, len(text)
    while i < n:
        ch = text[i]

        if state == "comment":
            end = text.find("*/", i)
            if end < 0:
                return state
            state, i = None, end + 2
            continue

        if state == "template":
            if ch == "\\":
                i += 2
                continue
            if ch == "`":
                state = None
            i += 1
            continue

        if text.startswith("//", i):
            break
        if text.startswith("/*", i):
            state, i = "comment", i + 2
            continue

        if ch in "'\"":
            j = i + 1
            while j < n and text[j] != ch:
                j += 2 if text[j] == "\\" else 1
            if j >= n:
                raise EmissionError(f"Cannot format output: unterminated string on line {lineno}.")
            i = j + 1
            continue

        if ch == "`":
            state = "template"
        elif ch in _OPENERS:
            stack.append((_OPENERS[ch], lineno))
        elif ch in _CLOSERS:
            if not stack or stack[-1][0] != ch:
                raise EmissionError(f"Cannot format output: unbalanced '{ch}' on line {lineno}.")
            stack.pop()
        i += 1

    return state


def format_typescript(code: str) -> str:
    """
    Normalize the layout of generated TypeScript.

    Re-indents every line by bracket depth, strips trailing whitespace,
    collapses runs of blank lines (dropping those that open or close a
    block) and ends the text with exactly one newline. Lines inside a
    template literal are kept verbatim.

    Raises EmissionError for unbalanced brackets and unterminated
    strings, comments or template literals.
    """
    stack = []
    lines = []
    state = None

    for lineno, raw in enumerate(code.splitlines(), 1):
        if state == "template":
            lines.append(raw.rstrip())
            state = _scan(raw, stack, lineno, state)
            continue

        text = raw.strip()
        if not text:
            if lines and lines[-1] and lines[-1][-1] not in _OPENERS:
                lines.append("")
            continue

        leading = len(text) - len(text.lstrip("})]"))
        if leading and lines and lines[-1] == "":
            lines.pop()

        depth = max(len(stack) - leading, 0)
        prefix = " " if state == "comment" and text.startswith("*") else ""
        lines.append(INDENT * depth + prefix + text)
        state = _scan(text, stack, lineno, state)

    if state == "comment":
        raise EmissionError("Cannot format output: unterminated block comment.")
    if state == "template":
        raise EmissionError("Cannot format output: unterminated template literal.")
    if stack:
        closer, lineno = stack[-1]
        raise EmissionError(f"Cannot format output: bracket opened on line {lineno} is never closed.")

    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines) + "\n"
