"""Pull source code out of a free-text model response."""

import re

FENCED_BLOCK = re.compile(r"```(?:[\w+#.-]*[ \t]*\n)?(.+?)```", re.DOTALL)


def extract_code_block(text: str) -> str:
    """Return the body of the first fenced code block in ``text``.

    Falls back to the whole response when no fence is present, since the
    model is not guaranteed to wrap its answer. Surrounding whitespace is
    trimmed in both cases, so an empty fence yields an empty string.
    """
    if not text:
        return ""
    match = FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def preserve_trailing_newline(original: str, fixed: str) -> str:
    """Give ``fixed`` the same trailing newline convention as ``original``."""
    if original.endswith("\n") and not fixed.endswith("\n"):
        return fixed + "\n"
    return fixed
