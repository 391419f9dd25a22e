"""Terminal rendering of chat messages, including fenced code blocks."""

import re
from dataclasses import dataclass
from typing import List

import click

from ..core.models import Message, Role


FENCE = "```"
CODE_BLOCK_PATTERN = re.compile(r"```(\w*)\n([\s\S]*?)```")


@dataclass(frozen=True)
class Segment:
    """A run of plain text, or a fenced code block with its language tag."""

    text: str
    is_code: bool = False
    language: str = ""


def split_code_blocks(text: str) -> List[Segment]:
    """Split message text into plain and code segments."""
    segments: List[Segment] = []
    position = 0
    for match in CODE_BLOCK_PATTERN.finditer(text):
        if match.start() > position:
            segments.append(Segment(text[position:match.start()]))
        segments.append(Segment(match.group(2), is_code=True, language=match.group(1)))
        position = match.end()
    if position < len(text) or not segments:
        segments.append(Segment(text[position:]))
    return segments


def join_segments(segments: List[Segment]) -> str:
    """Inverse of split_code_blocks."""
    parts = []
    for segment in segments:
        if segment.is_code:
            parts.append(f"{FENCE}{segment.language}\n{segment.text}{FENCE}")
        else:
            parts.append(segment.text)
    return "".join(parts)


def render_message(message: Message) -> str:
    """Render a message for the terminal."""
    if message.role is Role.USER:
        header = click.style("You", fg="cyan", bold=True)
    else:
        header = click.style("Nexus", fg="green", bold=True)

    lines = [header]
    for segment in split_code_blocks(message.text):
        if segment.is_code:
            label = (segment.language or "code").upper()
            lines.append(click.style(f"--- {label} ---", fg="yellow"))
            lines.append(click.style(segment.text.rstrip("\n"), fg="white", dim=True))
            lines.append(click.style("-" * (len(label) + 8), fg="yellow"))
        elif segment.text.strip():
            lines.append(segment.text.strip("\n"))

    if message.image_url:
        lines.append(click.style(f"[image] {message.image_url}", fg="magenta"))
    return "\n".join(lines)
