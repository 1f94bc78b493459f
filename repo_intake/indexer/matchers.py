"""Pluggable per-construct matchers for regex-based chunk extraction.

Each matcher turns file text into spans. Swapping one for a real parser for a
given language only requires another ``ChunkMatcher`` implementation.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern, Tuple

RESERVED_WORDS = {
    "if",
    "else",
    "elif",
    "for",
    "foreach",
    "while",
    "do",
    "switch",
    "case",
    "catch",
    "try",
    "finally",
    "except",
    "with",
    "return",
    "throw",
    "new",
    "typeof",
    "sizeof",
    "function",
    "constructor",
    "super",
    "await",
    "yield",
    "using",
    "lock",
    "synchronized",
    "defer",
    "select",
    "match",
    "when",
}

FLAG_TAGS = r"TODO|FIXME|BUG|HACK|XXX|OPTIMIZE|NOTE|WARNING"


@dataclass
class Span:
    """One extracted construct before it becomes a chunk."""

    chunk_type: str
    start_line: int
    end_line: int
    content: str
    name: Optional[str] = None
    export_type: Optional[str] = None


def line_of_offset(content: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return content.count("\n", 0, offset) + 1


def export_type_of(declaration: str) -> str:
    text = declaration.lstrip()
    if not text.startswith("export"):
        return "none"
    return "default" if re.match(r"export\s+default\b", text) else "named"


def capture_brace_body(lines: List[str], start_index: int, max_lines: int = 100) -> Tuple[str, int]:
    """Capture text from a start line until braces balance.

    Braces inside strings and comments are counted too; the window cap keeps
    the damage of a miscount bounded.

    Args:
        lines: File lines
        start_index: 0-based index of the declaration line
        max_lines: Maximum lines to capture

    Returns:
        Captured body and its 1-based end line
    """
    depth = 0
    opened = False
    end = min(len(lines), start_index + max_lines)
    body: List[str] = []
    end_line = start_index + 1

    for i in range(start_index, end):
        line = lines[i]
        body.append(line)
        end_line = i + 1
        for char in line:
            if char == "{":
                depth += 1
                opened = True
            elif char == "}":
                depth -= 1
        if opened and depth <= 0:
            break

    return "\n".join(body), end_line


def capture_type_body(lines: List[str], start_index: int, max_lines: int = 50) -> Tuple[str, int]:
    """Capture a type declaration.

    Braced declarations end when braces balance. Aliases without braces end at
    the first ``;`` or at the first following line that does not continue a
    union or intersection.
    """
    depth = 0
    opened = False
    end = min(len(lines), start_index + max_lines)
    body: List[str] = []
    end_line = start_index + 1

    for i in range(start_index, end):
        line = lines[i]
        stripped = line.strip()
        if not opened and i > start_index and not stripped.startswith(("|", "&")):
            break
        body.append(line)
        end_line = i + 1
        for char in line:
            if char == "{":
                depth += 1
                opened = True
            elif char == "}":
                depth -= 1
        if opened and depth <= 0:
            break
        if not opened and ";" in line:
            break

    return "\n".join(body), end_line


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _bracket_delta(line: str) -> int:
    return sum(line.count(c) for c in "([{") - sum(line.count(c) for c in ")]}")


def capture_indented_body(lines: List[str], start_index: int, max_lines: int = 100) -> Tuple[str, int]:
    """Capture an indentation-delimited block (Python ``def``/``class``).

    A wrapped signature runs until its brackets close, whatever the indent of
    the closing line; the body is every following line indented deeper than
    the declaration.
    """
    base = _indent_width(lines[start_index])
    end = min(len(lines), start_index + max_lines)
    last = start_index

    depth = _bracket_delta(lines[start_index])
    i = start_index + 1
    while i < end and depth > 0:
        depth += _bracket_delta(lines[i])
        last = i
        i += 1

    for j in range(i, end):
        line = lines[j]
        if not line.strip():
            continue
        if _indent_width(line) <= base:
            break
        last = j

    return "\n".join(lines[start_index : last + 1]), last + 1


class ChunkMatcher:
    """Base class: find spans of one construct category in a file."""

    chunk_type = ""

    def match(self, content: str, lines: List[str]) -> List[Span]:
        raise NotImplementedError


class RegexSymbolMatcher(ChunkMatcher):
    """Named constructs located by regex, bodies captured by a delimiter strategy."""

    def __init__(
        self,
        chunk_type: str,
        patterns: List[str],
        capture: Callable[[List[str], int, int], Tuple[str, int]] = capture_brace_body,
        max_lines: int = 100,
        min_length: int = 10,
        body_filter: Optional[Callable[[str], bool]] = None,
        flags: int = re.MULTILINE,
    ):
        """Initialize the matcher.

        Args:
            chunk_type: Chunk type emitted for every match
            patterns: Regexes whose first group is the symbol name
            capture: Body capture strategy
            max_lines: Line window passed to the capture strategy
            min_length: Stripped bodies at or below this length are noise
            body_filter: Optional extra predicate a body must satisfy
            flags: Regex flags
        """
        self.chunk_type = chunk_type
        self.patterns: List[Pattern] = [re.compile(p, flags) for p in patterns]
        self.capture = capture
        self.max_lines = max_lines
        self.min_length = min_length
        self.body_filter = body_filter

    def match(self, content: str, lines: List[str]) -> List[Span]:
        spans = []
        for pattern in self.patterns:
            for m in pattern.finditer(content):
                name = m.group(1)
                if not name or len(name) < 2 or name in RESERVED_WORDS:
                    continue

                start_line = line_of_offset(content, m.start(1))
                body, end_line = self.capture(lines, start_line - 1, self.max_lines)
                body = body.strip()
                if len(body) <= self.min_length:
                    continue
                if self.body_filter and not self.body_filter(body):
                    continue

                spans.append(
                    Span(
                        chunk_type=self.chunk_type,
                        start_line=start_line,
                        end_line=end_line,
                        content=body,
                        name=name,
                        export_type=export_type_of(m.group(0)),
                    )
                )
        return spans


class ImportBlockMatcher(ChunkMatcher):
    """The first contiguous block of import statements, as one span."""

    chunk_type = "import"

    def __init__(self, prefixes: Tuple[str, ...], comment_prefixes: Tuple[str, ...]):
        """Initialize the matcher.

        Args:
            prefixes: Line prefixes that start an import statement
            comment_prefixes: Line prefixes that may appear inside the block
        """
        self.prefixes = prefixes
        self.comment_prefixes = comment_prefixes

    def match(self, content: str, lines: List[str]) -> List[Span]:
        block: List[str] = []
        start_line = end_line = 0
        depth = 0

        for i, raw in enumerate(lines):
            line = raw.strip()
            continues = bool(block) and (
                depth > 0 or line.startswith("}") or " from " in line
            )
            if line.startswith(self.prefixes) or continues:
                if not block:
                    start_line = i + 1
                block.append(raw)
                end_line = i + 1
                depth += line.count("{") + line.count("(") - line.count("}") - line.count(")")
                depth = max(depth, 0)
            elif block and line and not line.startswith(self.comment_prefixes):
                break

        if not block:
            return []
        return [
            Span(
                chunk_type=self.chunk_type,
                start_line=start_line,
                end_line=end_line,
                content="\n".join(block),
            )
        ]


class FlaggedCommentMatcher(ChunkMatcher):
    """TODO/FIXME-style comments, one span per comment, named by tag."""

    chunk_type = "comment"

    def __init__(self, line_marker: str, block_comments: bool = False):
        """Initialize the matcher.

        Args:
            line_marker: Single-line comment marker (``//`` or ``#``)
            block_comments: Also scan ``/* ... */`` blocks
        """
        self.line_pattern = re.compile(
            rf"{re.escape(line_marker)}\s*({FLAG_TAGS}):?\s*(.+)", re.IGNORECASE
        )
        self.block_pattern = (
            re.compile(r"/\*(?:(?!\*/)[\s\S])*?(TODO|FIXME|BUG|HACK)[\s\S]*?\*/", re.IGNORECASE)
            if block_comments
            else None
        )

    def match(self, content: str, lines: List[str]) -> List[Span]:
        spans = []
        for m in self.line_pattern.finditer(content):
            line = line_of_offset(content, m.start())
            spans.append(
                Span(
                    chunk_type=self.chunk_type,
                    start_line=line,
                    end_line=line,
                    content=m.group(0).strip(),
                    name=m.group(1).upper(),
                )
            )

        if self.block_pattern:
            for m in self.block_pattern.finditer(content):
                start = line_of_offset(content, m.start())
                spans.append(
                    Span(
                        chunk_type=self.chunk_type,
                        start_line=start,
                        end_line=start + m.group(0).count("\n"),
                        content=m.group(0).strip(),
                        name=m.group(1).upper(),
                    )
                )
        return spans


# Regex families

C_LIKE_FUNCTION_PATTERNS = [
    r"(?:export\s+(?:default\s+)?)?(?:async\s+)?function\s*\*?\s+(\w+)\s*\(",
    r"(?:export\s+)?(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s*)?\([^)]*\)\s*(?::\s*[^=]+)?\s*=>",
    r"(?:export\s+)?(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?\w+\s*=>",
    r"^[ \t]*(?:async\s+)?(\w+)\s*\([^)]*\)\s*(?::\s*[^{;]+)?\s*\{",
    r"^[ \t]*(?:(?:public|private|protected|internal|static|final|override|virtual|abstract|"
    r"synchronized|open|suspend|async)\s+)+[\w<>\[\],.?]+\s+(\w+)\s*\([^)]*\)\s*(?:throws\s+[\w.,\s]+)?\{",
    # Plain return type: `int main(int argc, char **argv) {`, `void run() {`
    r"^[ \t]*[\w:<>*&\[\],. \t]+?[ \t*&](\w+)[ \t]*\([^;{}]*\)\s*(?:const\s*)?(?:throws\s+[\w.,\s]+)?\{",
    r"\bfunc\s+(?:\([^)]*\)\s*)?(\w+)\s*\(",
    r"\bfun\s+(\w+)\s*\(",
    r"\b(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?fn\s+(\w+)",
]

C_LIKE_CLASS_PATTERNS = [
    r"^[ \t]*(?:export\s+(?:default\s+)?)?(?:(?:public|private|protected|internal|static|final|"
    r"abstract|sealed|partial|data|open)\s+)*class\s+(\w+)",
    r"\b(?:pub\s+)?struct\s+(\w+)\s*\{",
    r"^type\s+(\w+)\s+(?:struct|interface)\s*\{",
    r"\bimpl(?:<[^>]*>)?\s+(?:[\w:<>]+\s+for\s+)?(\w+)",
]

COMPONENT_PATTERNS = [
    r"(?:export\s+(?:default\s+)?)?function\s+([A-Z]\w*)\s*\(",
    r"(?:export\s+)?(?:const|let)\s+([A-Z]\w*)\s*(?::\s*React\.FC(?:<[^>]*>)?)?\s*=\s*(?:async\s*)?\([^)]*\)\s*=>",
    r"(?:export\s+)?(?:const|let)\s+(\w+)\s*=\s*(?:React\.)?forwardRef",
    r"(?:export\s+)?(?:const|let)\s+(\w+)\s*=\s*(?:React\.)?memo\b",
]

HOOK_PATTERNS = [r"(?:export\s+(?:default\s+)?)?(?:const|function)\s+(use[A-Z]\w*)"]

TYPE_PATTERNS = [
    r"(?:export\s+)?(?:declare\s+)?interface\s+(\w+)",
    r"(?:export\s+)?(?:declare\s+)?type\s+(\w+)(?:<[^>]*>)?\s*=",
    r"(?:export\s+)?(?:const\s+)?enum\s+(\w+)",
]

PYTHON_FUNCTION_PATTERNS = [r"^[ \t]*(?:async[ \t]+)?def[ \t]+(\w+)[ \t]*\("]
PYTHON_CLASS_PATTERNS = [r"^[ \t]*class[ \t]+(\w+)"]

# Closing tags, self-closing tags and fragments; generics like Array<string> never match
_JSX_HINT = re.compile(r"</[A-Za-z][\w.]*\s*>|<[A-Za-z][\w.]*(?:\s[^<>]*)?/>|<>|</>|React\.createElement\(")
_WRAPPER_HINT = re.compile(r"\b(?:forwardRef|memo)\(")


def looks_like_component(body: str) -> bool:
    return bool(_JSX_HINT.search(body) or _WRAPPER_HINT.search(body))


def c_like_matchers(
    max_body_lines: int, max_type_lines: int, with_types: bool, with_components: bool
) -> List[ChunkMatcher]:
    """Matchers for brace-delimited languages."""
    matchers: List[ChunkMatcher] = [
        RegexSymbolMatcher("function", C_LIKE_FUNCTION_PATTERNS, max_lines=max_body_lines),
        RegexSymbolMatcher("class", C_LIKE_CLASS_PATTERNS, max_lines=max_body_lines),
    ]
    if with_components:
        matchers.append(
            RegexSymbolMatcher(
                "component",
                COMPONENT_PATTERNS,
                max_lines=max_body_lines,
                min_length=20,
                body_filter=looks_like_component,
            )
        )
        matchers.append(
            RegexSymbolMatcher("hook", HOOK_PATTERNS, max_lines=max_body_lines, min_length=20)
        )
    if with_types:
        matchers.append(
            RegexSymbolMatcher(
                "type", TYPE_PATTERNS, capture=capture_type_body, max_lines=max_type_lines
            )
        )
    matchers.append(
        ImportBlockMatcher(
            prefixes=("import ", "import{", "from ", "use ", "#include", "package "),
            comment_prefixes=("//", "/*", "*"),
        )
    )
    matchers.append(FlaggedCommentMatcher("//", block_comments=True))
    return matchers


def python_matchers(max_body_lines: int) -> List[ChunkMatcher]:
    """Matchers for indentation-delimited Python."""
    return [
        RegexSymbolMatcher(
            "function", PYTHON_FUNCTION_PATTERNS, capture=capture_indented_body, max_lines=max_body_lines
        ),
        RegexSymbolMatcher(
            "class", PYTHON_CLASS_PATTERNS, capture=capture_indented_body, max_lines=max_body_lines
        ),
        ImportBlockMatcher(prefixes=("import ", "from "), comment_prefixes=("#",)),
        FlaggedCommentMatcher("#"),
    ]
