"""
Order-only transforms applied to model output before it reaches the client.

Neither function changes content: answers keep their text, correctness flag
and counter-argument; markdown keeps every line except that choice bodies
inside a detected question block trade places.
"""

import random
import re
from typing import List, Optional

from quiz_sensei.schemas.quiz import QuestionSet


def shuffle_answers(question_set: QuestionSet, rng: Optional[random.Random] = None) -> QuestionSet:
    """
    Return a copy of `question_set` with each question's answers permuted
    independently (uniform Fisher-Yates via random.shuffle).
    """
    rng = rng or random.Random()
    questions = []
    for question in question_set.questions:
        answers = list(question.answers)
        rng.shuffle(answers)
        questions.append(question.model_copy(update={"answers": answers}))
    return question_set.model_copy(update={"questions": questions})


# ── Markdown choice blocks ───────────────────────────────────────────────────
#
# A block is a numbered question line ("1. ...", "2) ...", "**3.** ...",
# "### 4. ...") immediately followed by two or more lettered choice lines
# ("A) ...", "b. ...", "- (C) ...", "أ) ..."). A label must be followed by
# spaces on its own line; a bare "A)" ends the block. Lines inside ``` fences
# are never treated as blocks.

_QUESTION_LINE = re.compile(r"^\s*(?:#{1,6}\s+)?(?:\*\*)?\d{1,3}[.)](?:\*\*)?\s+\S")
_CHOICE_LINE = re.compile(
    r"^(?P<prefix>[^\S\r\n]*(?:[-*+][^\S\r\n]+)?(?:\*\*)?\(?(?:[A-Za-z]|[ء-ي])[.)](?:\*\*)?[^\S\r\n]+)"
    r"(?P<body>[^\r\n]*?)"
    r"(?P<eol>\r?\n)?\Z"
)
_FENCE = re.compile(r"^\s*(```|~~~)")


def shuffle_markdown_choices(markdown: str, rng: Optional[random.Random] = None) -> str:
    """
    Shuffle the choice bodies within each numbered question block.

    Label prefixes stay in place so the letters still read A, B, C...; only
    the text after them moves. Anything outside a block, including malformed
    blocks, is returned untouched.
    """
    if not markdown:
        return markdown

    rng = rng or random.Random()
    lines = markdown.splitlines(keepends=True)
    out: List[str] = []
    in_fence = False
    i = 0

    while i < len(lines):
        line = lines[i]
        i += 1

        if _FENCE.match(line):
            in_fence = not in_fence
            out.append(line)
            continue
        if in_fence or not _QUESTION_LINE.match(line):
            out.append(line)
            continue

        out.append(line)
        choices = []
        while i < len(lines):
            match = _CHOICE_LINE.match(lines[i])
            if not match:
                break
            choices.append(match)
            i += 1

        if len(choices) < 2:
            out.extend(m.string for m in choices)
            continue

        bodies = [m.group("body") for m in choices]
        rng.shuffle(bodies)
        for match, body in zip(choices, bodies):
            out.append(f"{match.group('prefix')}{body}{match.group('eol') or ''}")

    return "".join(out)
