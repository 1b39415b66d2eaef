"""Conversion between diary markdown and Notion page body blocks."""

from __future__ import annotations

from typing import Any

import mistune

from diary_sync.mapping import read_plain_text, to_rich_text

MAX_BLOCKS_PER_REQUEST = 100
_CHUNK_LIMIT = 1800

_md_parser = mistune.create_markdown(renderer=None, plugins=["strikethrough"])

_INLINE_ANNOTATIONS = {"strong": "bold", "emphasis": "italic", "strikethrough": "strikethrough"}

# Languages Notion accepts for code blocks; anything else is rejected with 400.
CODE_LANGUAGES = frozenset(
    {
        "abap", "arduino", "bash", "basic", "c", "clojure", "coffeescript", "c++", "c#",
        "css", "dart", "diff", "docker", "elixir", "elm", "erlang", "flow", "fortran",
        "f#", "gherkin", "glsl", "go", "graphql", "groovy", "haskell", "html", "java",
        "javascript", "json", "julia", "kotlin", "latex", "less", "lisp", "livescript",
        "lua", "makefile", "markdown", "markup", "matlab", "mermaid", "nix",
        "objective-c", "ocaml", "pascal", "perl", "php", "plain text", "powershell",
        "prolog", "protobuf", "python", "r", "reason", "ruby", "rust", "sass", "scala",
        "scheme", "scss", "shell", "sql", "swift", "typescript", "vb.net", "verilog",
        "vhdl", "visual basic", "webassembly", "xml", "yaml", "java/c/c++/c#",
    }
)

_LANGUAGE_ALIASES = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "yml": "yaml",
    "md": "markdown",
    "cpp": "c++",
    "cs": "c#",
    "csharp": "c#",
    "rb": "ruby",
    "rs": "rust",
    "kt": "kotlin",
    "golang": "go",
    "dockerfile": "docker",
    "text": "plain text",
    "txt": "plain text",
    "plaintext": "plain text",
}


def code_language(info: str | None) -> str:
    """Map a fenced-code info string onto a Notion code language."""
    words = (info or "").strip().lower().split()
    if not words:
        return "plain text"
    name = _LANGUAGE_ALIASES.get(words[0], words[0])
    return name if name in CODE_LANGUAGES else "plain text"


def _inline_rich_text(
    children: list[dict[str, Any]],
    annotations: dict[str, bool] | None = None,
    link_url: str | None = None,
) -> list[dict[str, Any]]:
    """Recursively convert mistune inline nodes to Notion rich_text items."""
    annotations = annotations or {}
    items: list[dict[str, Any]] = []
    for node in children:
        ntype = node.get("type", "")
        if ntype in _INLINE_ANNOTATIONS:
            merged = {**annotations, _INLINE_ANNOTATIONS[ntype]: True}
            items.extend(_inline_rich_text(node.get("children", []), merged, link_url))
            continue
        if ntype == "link":
            url = node.get("attrs", {}).get("url", "")
            items.extend(_inline_rich_text(node.get("children", []), annotations, url))
            continue
        if ntype in ("softbreak", "linebreak"):
            raw = "\n"
        else:
            raw = node.get("raw", "")
        if not raw:
            continue
        rt: dict[str, Any] = {"type": "text", "text": {"content": raw}}
        if ntype == "codespan":
            rt["annotations"] = {**annotations, "code": True}
        elif annotations:
            rt["annotations"] = {**annotations}
        if link_url:
            rt["text"]["link"] = {"url": link_url}
        items.append(rt)
    return items


def _chunk_rich_text(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Split rich_text items whose content exceeds the Notion API limit."""
    result: list[dict[str, Any]] = []
    for item in items:
        content = item["text"]["content"]
        if len(content) <= _CHUNK_LIMIT:
            result.append(item)
            continue
        for start in range(0, len(content), _CHUNK_LIMIT):
            chunk = dict(item)
            chunk["text"] = {**item["text"], "content": content[start : start + _CHUNK_LIMIT]}
            result.append(chunk)
    return result


def _rich_text(inline: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return _chunk_rich_text(_inline_rich_text(inline)) or to_rich_text("")


def _flatten_inline(node: dict[str, Any]) -> list[dict[str, Any]]:
    inline: list[dict[str, Any]] = []
    for child in node.get("children", []):
        if child.get("type") in ("paragraph", "block_text"):
            inline.extend(child.get("children", []))
    return inline


def _block(block_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: payload}


def _node_to_blocks(node: dict[str, Any]) -> list[dict[str, Any]]:
    ntype = node.get("type", "")

    if ntype == "heading":
        level = min(max(node.get("attrs", {}).get("level", 1), 1), 3)
        return [_block(f"heading_{level}", {"rich_text": _rich_text(node.get("children", []))})]

    if ntype == "paragraph":
        return [_block("paragraph", {"rich_text": _rich_text(node.get("children", []))})]

    if ntype == "list":
        ordered = node.get("attrs", {}).get("ordered", False)
        list_type = "numbered_list_item" if ordered else "bulleted_list_item"
        blocks: list[dict[str, Any]] = []
        for item in node.get("children", []):
            payload: dict[str, Any] = {"rich_text": _rich_text(_flatten_inline(item))}
            nested = [
                block
                for child in item.get("children", [])
                if child.get("type") == "list"
                for block in _node_to_blocks(child)
            ]
            if nested:
                payload["children"] = nested
            blocks.append(_block(list_type, payload))
        return blocks

    if ntype == "block_quote":
        return [_block("quote", {"rich_text": _rich_text(_flatten_inline(node))})]

    if ntype == "block_code":
        raw = node.get("raw", "").rstrip("\n")
        language = code_language(node.get("attrs", {}).get("info"))
        return [_block("code", {"language": language, "rich_text": to_rich_text(raw)})]

    if ntype == "thematic_break":
        return [_block("divider", {})]

    raw = node.get("raw", "").strip()
    if raw:
        return [_block("paragraph", {"rich_text": to_rich_text(raw)})]
    return []


def markdown_to_blocks(markdown: str | None) -> list[dict[str, Any]]:
    """Convert entry content into Notion blocks. Empty content yields no blocks."""
    ast = _md_parser(markdown or "")
    if not isinstance(ast, list):
        return []
    return [block for node in ast for block in _node_to_blocks(node)]


_PREFIXES = {
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "- ",
    "numbered_list_item": "1. ",
    "quote": "> ",
}


def blocks_to_markdown(blocks: list[dict[str, Any]], indent: int = 0) -> str:
    prefix = "  " * indent
    lines: list[str] = []
    for block in blocks:
        if not block or block.get("archived"):
            continue
        block_type = block.get("type")
        payload = block.get(block_type, {}) if block_type else {}
        text = read_plain_text(payload.get("rich_text", [])).strip()

        if block_type in _PREFIXES:
            lines.append(f"{prefix}{_PREFIXES[block_type]}{text}")
            children = payload.get("children", [])
            if children:
                lines.append(blocks_to_markdown(children, indent + 1))
                continue
        elif block_type == "code":
            lines.extend([f"{prefix}```{payload.get('language', '')}".rstrip(), text, f"{prefix}```"])
        elif block_type == "divider":
            lines.append(f"{prefix}---")
        elif block_type == "paragraph":
            lines.append(f"{prefix}{text}")
        else:
            continue
        if indent == 0:
            lines.append("")

    result = "\n".join(lines)
    return result.strip() if indent == 0 else result.rstrip()
