"""Cloze rendering for card text.

A cloze is a ``[bracketed]`` span in a card's front. The prompt blanks
every span at once; the reveal shows the text with the brackets removed.
Brackets nest, so ``[a [b]]`` is a single span. Anything else in the
text, LaTeX and Markdown included, is passed through as-is.
"""

from collections.abc import Iterator

CLOZE_PLACEHOLDER = "___"
ANSWER_SEPARATOR = "\n---\n"


def expand_newlines(text: str) -> str:
    """Turn literal ``\\n`` sequences into real line breaks."""
    return text.replace("\\n", "\n")


def _segments(text: str) -> Iterator[tuple[bool, str]]:
    """Split text into (is_cloze, content) pieces.

    Cloze content keeps any nested brackets. A stray ``]`` outside a span
    is dropped; an unclosed ``[`` runs to the end of the text.
    """
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "[":
            if depth == 0:
                if current:
                    yield False, "".join(current)
                current = []
            else:
                current.append(ch)
            depth += 1
        elif ch == "]":
            if depth == 0:
                continue
            depth -= 1
            if depth == 0:
                yield True, "".join(current)
                current = []
            else:
                current.append(ch)
        else:
            current.append(ch)

    if depth > 0:
        yield True, "".join(current)
    elif current:
        yield False, "".join(current)


def extract_cloze_deletions(text: str) -> list[str]:
    """Return the non-empty cloze spans in order of appearance."""
    return [content for is_cloze, content in _segments(text) if is_cloze and content]


def render_prompt(front: str, placeholder: str = CLOZE_PLACEHOLDER) -> str:
    """Blank every cloze span in ``front``.

    Text with no non-empty span, such as a bare ``[]``, is shown as written.
    """
    if not extract_cloze_deletions(front):
        return expand_newlines(front)
    parts = [placeholder if is_cloze else content for is_cloze, content in _segments(front)]
    return expand_newlines("".join(parts))


def render_reveal(front: str) -> str:
    """Return ``front`` with every cloze marker removed and its content shown."""
    revealed = front.replace("[", "").replace("]", "")
    return expand_newlines(revealed)


def render_answer(front: str, back: str) -> str:
    """The full answer: revealed front, then the back when there is one."""
    revealed = render_reveal(front)
    back = expand_newlines(back)
    if not back.strip():
        return revealed
    return f"{revealed}{ANSWER_SEPARATOR}{back}"
