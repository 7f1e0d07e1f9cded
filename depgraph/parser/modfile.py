"""Parser for Go go.mod files.

Single pass over the lines. Malformed lines are skipped rather than
rejected, and version strings are taken verbatim.
"""

from __future__ import annotations

import re
from pathlib import Path

from depgraph.parser.models import ManifestRecord, ModuleVersion, Replacement, Requirement

# module github.com/foo/bar
_MODULE_RE = re.compile(r"^module\s+(\S+)")

# go 1.21
_GO_RE = re.compile(r"^go\s+(\S+)")

# require ( / replace ( / exclude ( ...
_BLOCK_OPEN_RE = re.compile(r"^(\w+)\s*\($")

# require github.com/foo/bar v1.2.3
_DIRECTIVE_RE = re.compile(r"^(require|replace)\s+(.+)$")

_REPLACE_ARROW = "=>"


def parse_go_mod(content: str) -> ManifestRecord:
    """Parse go.mod *content* into a :class:`ManifestRecord`."""
    record = ManifestRecord()
    block: str | None = None

    for raw_line in content.splitlines():
        line = raw_line.strip()
        code, _ = _split_comment(line)
        if not code:
            continue

        # A closer ends whichever block is open; a stray one is harmless.
        if code == ")":
            block = None
            continue

        if block is not None:
            if block == "require":
                _append_requirement(record, line)
            elif block == "replace":
                _append_replacement(record, line)
            # exclude/retract/godebug/tool blocks are not modelled
            continue

        m = _BLOCK_OPEN_RE.match(code)
        if m:
            block = m.group(1)
            continue

        m = _MODULE_RE.match(line)
        if m:
            record.module_path = _unquote(m.group(1))
            continue

        m = _GO_RE.match(line)
        if m:
            record.go_version = m.group(1)
            continue

        m = _DIRECTIVE_RE.match(line)
        if m:
            if m.group(1) == "require":
                _append_requirement(record, m.group(2))
            else:
                _append_replacement(record, m.group(2))

    return record


def parse_go_mod_file(path: Path | str) -> ManifestRecord:
    """Read and parse a go.mod file. I/O errors propagate as :class:`OSError`."""
    content = Path(path).read_text(encoding="utf-8", errors="replace")
    return parse_go_mod(content)


def _split_comment(line: str) -> tuple[str, str]:
    code, sep, comment = line.partition("//")
    return code.strip(), comment.strip() if sep else ""


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"`":
        return value[1:-1]
    return value


def _append_requirement(record: ManifestRecord, line: str) -> None:
    code, comment = _split_comment(line)
    parts = code.split()
    if len(parts) < 2:
        return

    comment_tokens = comment.split()
    record.dependencies.append(
        Requirement(
            path=_unquote(parts[0]),
            version=parts[1],
            indirect=bool(comment_tokens) and comment_tokens[-1] == "indirect",
        )
    )


def _append_replacement(record: ManifestRecord, line: str) -> None:
    code, _ = _split_comment(line)
    left, arrow, right = code.partition(_REPLACE_ARROW)
    if not arrow:
        return

    old_parts = left.split()
    new_parts = right.split()
    if not old_parts or not new_parts:
        return

    record.replacements.append(
        Replacement(
            old=ModuleVersion(
                path=_unquote(old_parts[0]),
                version=old_parts[1] if len(old_parts) > 1 else "",
            ),
            new=ModuleVersion(
                path=_unquote(new_parts[0]),
                version=new_parts[1] if len(new_parts) > 1 else "",
            ),
        )
    )
