"""Per-mode system instructions loaded from ``prompts/prompts.json``.

Entries are strings or lists of lines, nested by section, and addressed by
dotted key (``system.contracts``). Placeholders use ``string.Template``
syntax. The file is re-read when its modification time changes.
"""
from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from string import Template
from typing import Any

from loguru import logger

from lexstream.models.answer import ChatMode

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


def _flatten(node: dict[str, Any], prefix: str = "") -> Iterator[tuple[str, str]]:
    for name, value in node.items():
        key = f"{prefix}.{name}" if prefix else name
        if isinstance(value, dict):
            yield from _flatten(value, key)
        elif isinstance(value, list):
            yield key, "\n".join(str(line) for line in value)
        elif isinstance(value, str):
            yield key, value
        else:
            raise TypeError(f"Prompt entry must be text or a list of lines: {key}")


class PromptCatalog:
    def __init__(self, path: Path = PROMPTS_PATH):
        self.path = path
        self._templates: dict[str, Template] = {}
        self._mtime_ns: int | None = None

    def _refresh(self) -> None:
        mtime_ns = self.path.stat().st_mtime_ns
        if mtime_ns == self._mtime_ns:
            return
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Prompt catalog must be a JSON object: {self.path}")
        self._templates = {key: Template(text) for key, text in _flatten(payload)}
        self._mtime_ns = mtime_ns
        logger.debug(f"Loaded {len(self._templates)} prompts from {self.path.name}")

    def keys(self) -> list[str]:
        self._refresh()
        return sorted(self._templates)

    def render(self, key: str, **values: Any) -> str:
        self._refresh()
        template = self._templates.get(key)
        if template is None:
            raise KeyError(f"Prompt key not found: {key}")
        try:
            return template.substitute(values)
        except KeyError as exc:
            raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc

    def clear(self) -> None:
        self._templates = {}
        self._mtime_ns = None


catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    return catalog.render(key, **values)


def system_instruction(mode: ChatMode, *, delimiter: str, prompts: PromptCatalog | None = None) -> str:
    """System instruction for a chat mode, embedding the follow-up delimiter.

    Raises ValueError when the follow-up block does not contain the
    delimiter verbatim; the answer could never be split otherwise.
    """
    prompts = prompts or catalog
    body = prompts.render(f"system.{mode.value}")
    follow_ups = prompts.render(f"follow_ups.{mode.value}", delimiter=delimiter)
    if delimiter not in follow_ups:
        raise ValueError(f"Follow-up prompt for '{mode.value}' does not embed the delimiter")
    return f"{body}\n\n{follow_ups}"


def clear_prompt_cache() -> None:
    catalog.clear()
