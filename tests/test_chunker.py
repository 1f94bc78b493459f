"""Tests for regex-based semantic chunk extraction."""

from repo_intake.indexer.chunker import SemanticChunker
from repo_intake.indexer.grammars import LanguageRegistry
from repo_intake.indexer.models import CodeChunk

INDEX_TS = """export function greet(name: string): string {
  // TODO: support locales other than English
  return `Hello, ${name}`;
}
"""

COMPONENTS_TSX = """import React from 'react';
import { useState } from 'react';

export function Counter({ start }: { start: number }) {
  const [count, setCount] = useState(start);
  return <button onClick={() => setCount(count + 1)}>{count}</button>;
}

export function useToggle(initial: boolean) {
  const [on, setOn] = useState(initial);
  return [on, () => setOn(!on)] as const;
}
"""

TYPES_TS = """export interface User {
  id: string;
  name: string;
}

export type Status =
  | 'active'
  | 'disabled';
"""

GREETER_PY = """import os
from typing import List


class Greeter:
    def __init__(self, name):
        self.name = name

    def greet(self):
        # FIXME: handle empty names
        return f"Hello, {self.name}"


def main():
    print(Greeter(os.getenv("USER", "world")).greet())
"""

MAIN_C = """#include <stdio.h>

static int add(int a, int b) {
    return a + b;
}

int main(int argc, char **argv) {
    printf("%d", add(1, 2));
    return 0;
}
"""

RUNNER_JAVA = """package demo;

import java.util.List;

class Runner {
    void run() {
        System.out.println("run");
    }

    int count(List<String> items) {
        return items.size();
    }
}
"""

FORMATTER_TSX = """export function Formatter(values: Array<string>) {
  const memory = values.length;
  return memory;
}

export function Counter({ start }: { start: number }) {
  return <button>{start}</button>;
}
"""

PACKAGE_JSON = """{
  "name": "widgets",
  "version": "1.0.0"
}
"""


def by_type(chunks):
    grouped = {}
    for chunk in chunks:
        grouped.setdefault(chunk.chunk_type, []).append(chunk)
    return grouped


def test_exported_function_and_todo_comment():
    chunks = SemanticChunker().chunk_file("src/index.ts", INDEX_TS)
    grouped = by_type(chunks)

    assert set(grouped) == {"function", "comment"}
    function = grouped["function"][0]
    assert len(grouped["function"]) == 1
    assert function.id == "src/index.ts:function:greet:1"
    assert function.metadata.name == "greet"
    assert function.metadata.export_type == "named"
    assert function.metadata.start_line == 1
    assert function.metadata.end_line == 4
    assert function.metadata.language == "typescript"

    comment = grouped["comment"][0]
    assert len(grouped["comment"]) == 1
    assert comment.metadata.name == "TODO"
    assert comment.metadata.start_line == 2


def test_chunk_ids_are_stable_and_unique():
    chunker = SemanticChunker()
    first = chunker.chunk_file("src/components.tsx", COMPONENTS_TSX)
    second = SemanticChunker().chunk_file("src/components.tsx", COMPONENTS_TSX)

    ids = [c.id for c in first]
    assert ids == [c.id for c in second]
    assert len(ids) == len(set(ids))


def test_components_and_hooks_replace_plain_functions():
    chunks = SemanticChunker().chunk_file("src/components.tsx", COMPONENTS_TSX)
    grouped = by_type(chunks)

    assert "function" not in grouped
    assert [c.metadata.name for c in grouped["component"]] == ["Counter"]
    assert [c.metadata.name for c in grouped["hook"]] == ["useToggle"]
    imports = grouped["import"]
    assert len(imports) == 1
    assert (imports[0].metadata.start_line, imports[0].metadata.end_line) == (1, 2)


def test_type_declarations():
    chunks = SemanticChunker().chunk_file("src/types.ts", TYPES_TS)
    types = {c.metadata.name: c for c in chunks if c.chunk_type == "type"}

    assert set(types) == {"User", "Status"}
    assert types["User"].metadata.end_line == 4
    assert types["Status"].content.endswith("'disabled';")


def test_python_functions_classes_and_comments():
    chunks = SemanticChunker().chunk_file("app/greeter.py", GREETER_PY)
    grouped = by_type(chunks)

    assert [c.metadata.name for c in grouped["class"]] == ["Greeter"]
    assert {c.metadata.name for c in grouped["function"]} == {"__init__", "greet", "main"}
    assert grouped["comment"][0].metadata.name == "FIXME"
    assert grouped["import"][0].metadata.end_line == 2
    greeter = grouped["class"][0]
    assert greeter.metadata.start_line == 5
    assert greeter.metadata.end_line == 11


def test_wrapped_python_signature_keeps_the_body():
    content = "def build(\n    owner,\n    name,\n) -> dict:\n    result = {}\n    return result\n"
    chunks = SemanticChunker().chunk_file("app/build.py", content)
    build = by_type(chunks)["function"][0]

    assert build.metadata.name == "build"
    assert "return result" in build.content
    assert build.metadata.end_line == 6


def test_c_functions_with_plain_return_types():
    chunks = SemanticChunker().chunk_file("src/main.c", MAIN_C)
    functions = {c.metadata.name: c for c in by_type(chunks)["function"]}

    assert set(functions) == {"add", "main"}
    assert (functions["main"].metadata.start_line, functions["main"].metadata.end_line) == (7, 10)


def test_java_methods_without_modifiers():
    chunks = SemanticChunker().chunk_file("src/demo/Runner.java", RUNNER_JAVA)
    grouped = by_type(chunks)

    assert {c.metadata.name for c in grouped["function"]} == {"run", "count"}
    assert [c.metadata.name for c in grouped["class"]] == ["Runner"]


def test_generic_types_and_memo_like_names_are_not_components():
    chunks = SemanticChunker().chunk_file("src/format.tsx", FORMATTER_TSX)
    grouped = by_type(chunks)

    assert [c.metadata.name for c in grouped["function"]] == ["Formatter"]
    assert [c.metadata.name for c in grouped["component"]] == ["Counter"]


def test_malformed_sources_never_raise():
    chunker = SemanticChunker()
    minified = '!function(e){var t={};function n(r){if(t[r])return t[r].exports}n.p="";}([]);'
    unbalanced = "export function open() {\n  if (ready) {\n    start();\n"
    truncated = "def broken(\n    x,"

    assert isinstance(chunker.chunk_file("dist/app.min.js", minified), list)
    opened = chunker.chunk_file("src/open.ts", unbalanced)
    assert "open" in {c.metadata.name for c in opened}
    assert isinstance(chunker.chunk_file("app/broken.py", truncated), list)


def test_config_file_becomes_one_chunk():
    chunks = SemanticChunker().chunk_file("package.json", PACKAGE_JSON)

    assert len(chunks) == 1
    assert chunks[0].chunk_type == "config"
    assert chunks[0].metadata.start_line == 1
    assert chunks[0].content == PACKAGE_JSON


def test_unknown_language_yields_no_chunks():
    assert SemanticChunker().chunk_file("notes/todo.txt", "TODO: buy milk\n") == []


def test_explicit_language_overrides_detection():
    chunks = SemanticChunker().chunk_file("Makefile", INDEX_TS, language="TypeScript")

    assert any(c.chunk_type == "function" for c in chunks)


def test_chunk_dict_round_trip_accepts_camel_case_metadata():
    chunk = CodeChunk.from_dict(
        {
            "id": "src/a.ts:function:run:3",
            "path": "src/a.ts",
            "type": "function",
            "content": "function run() { return 1; }",
            "metadata": {"startLine": 3, "endLine": 5, "language": "typescript", "exportType": "none"},
        }
    )

    assert chunk.metadata.start_line == 3
    assert chunk.metadata.end_line == 5
    assert chunk.metadata.tokens == 7  # 28 characters
    assert CodeChunk.from_dict(chunk.to_dict()) == chunk


def test_registry_detects_by_extension():
    registry = LanguageRegistry()

    assert registry.detect_language("src/app.tsx") == "typescript"
    assert registry.detect_language("main.rs") == "rust"
    assert registry.get_language_config("Python").name == "python"
