"""JSON-with-comments handling for manifest files.

Manifests accept ``//`` line comments, ``/* */`` block comments and trailing
commas. Comments are not preserved when a bare profile is written back.
"""

import json
import re
from typing import Any

_TRAILING_COMMA = re.compile(r",(\s*[\]}])")


def strip_comments(text: str) -> str:
    """Remove comments outside of string literals, keeping line structure."""
    out: list[str] = []
    i = 0
    length = len(text)
    in_string = False

    while i < length:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < length else ""

        if in_string:
            out.append(ch)
            if ch == "\\" and nxt:
                out.append(nxt)
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif ch == "/" and nxt == "/":
            end = text.find("\n", i)
            i = length if end == -1 else end
        elif ch == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            block = text[i:] if end == -1 else text[i : end + 2]
            # keep newlines so json error positions still point at the right line
            out.append("\n" * block.count("\n"))
            i = length if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def _strip_trailing_commas(text: str) -> str:
    result: list[str] = []
    in_string = False
    segment_start = 0

    # apply the regex only to spans outside string literals
    i = 0
    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
                result.append(text[segment_start : i + 1])
                segment_start = i + 1
        elif ch == '"':
            result.append(_TRAILING_COMMA.sub(r"\1", text[segment_start:i]))
            segment_start = i
            in_string = True
        i += 1

    tail = text[segment_start:]
    result.append(tail if in_string else _TRAILING_COMMA.sub(r"\1", tail))
    return "".join(result)


def loads(text: str) -> Any:
    """Parse JSONC text.

    Raises:
        json.JSONDecodeError: If the text is not valid JSON after comment removal
    """
    return json.loads(_strip_trailing_commas(strip_comments(text)))


def dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
