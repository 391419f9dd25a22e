"""Tests for message rendering."""

import click

from nexus.core.models import Message
from nexus.utils.formatting import Segment, join_segments, render_message, split_code_blocks


class TestSplitCodeBlocks:
    """Fenced code block detection."""

    def test_plain_text(self):
        assert split_code_blocks("just words") == [Segment("just words")]

    def test_empty_text(self):
        assert split_code_blocks("") == [Segment("")]

    def test_code_block_with_language(self):
        text = "Here:\n```python\nprint('hi')\n```\nDone."
        assert split_code_blocks(text) == [
            Segment("Here:\n"),
            Segment("print('hi')\n", is_code=True, language="python"),
            Segment("\nDone."),
        ]

    def test_code_block_without_language(self):
        segments = split_code_blocks("```\nls -la\n```")
        assert segments == [Segment("ls -la\n", is_code=True, language="")]

    def test_unterminated_fence_is_plain_text(self):
        text = "```python\nprint('hi')"
        assert split_code_blocks(text) == [Segment(text)]

    def test_join_is_inverse(self):
        text = "a\n```js\nx()\n```\nb\n```\ny\n```"
        assert join_segments(split_code_blocks(text)) == text


class TestRenderMessage:
    """Terminal rendering."""

    def test_user_message(self):
        rendered = click.unstyle(render_message(Message.user("Hello")))
        assert rendered.splitlines() == ["You", "Hello"]

    def test_code_is_labelled(self):
        message = Message.assistant("Try:\n```python\nprint(1)\n```")
        rendered = click.unstyle(render_message(message))
        assert rendered.splitlines()[0] == "Nexus"
        assert "--- PYTHON ---" in rendered
        assert "print(1)" in rendered

    def test_image_reference(self):
        message = Message.assistant("Here", image_url="https://example.com/x.png")
        rendered = click.unstyle(render_message(message))
        assert "[image] https://example.com/x.png" in rendered
