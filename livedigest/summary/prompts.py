"""Prompt rendering for initial and incremental summaries."""

from __future__ import annotations

import re

from livedigest.config import SystemConfig

_PLACEHOLDER = re.compile(r"\{(summary|transcription)\}")


def fill_template(template: str, **values: str) -> str:
    """Substitute ``{summary}`` / ``{transcription}`` in a single pass.

    Substituted text is never rescanned, so a summary that happens to contain
    ``{transcription}`` stays literal. Unknown braces are left alone.
    """
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), ""), template)


def build_prompt(system: SystemConfig, summary: str, transcript: str) -> str:
    """Return the initial prompt when ``summary`` is empty, else the update prompt."""
    if not summary:
        return fill_template(system.initial_prompt, transcription=transcript)
    return fill_template(system.update_prompt, summary=summary, transcription=transcript)
