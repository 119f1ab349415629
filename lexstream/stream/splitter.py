from __future__ import annotations

DEFAULT_DELIMITER = "---FOLLOW_UP_QUESTIONS---"


class ResponseSplitter:
    """Split the answer from the follow-up block that trails the delimiter."""

    def __init__(
        self,
        delimiter: str = DEFAULT_DELIMITER,
        *,
        min_length: int = 10,
        max_items: int = 5,
    ):
        if not delimiter:
            raise ValueError("Follow-up delimiter must not be empty")
        self.delimiter = delimiter
        self.min_length = min_length
        self.max_items = max_items

    def split(self, full_text: str) -> tuple[str, list[str]]:
        index = full_text.find(self.delimiter)
        if index < 0:
            return full_text, []

        main_text = full_text[:index].strip()
        tail = full_text[index + len(self.delimiter):]

        questions: list[str] = []
        for line in tail.splitlines():
            line = line.strip()
            if not line or line == self.delimiter:
                continue
            if len(line) <= self.min_length:
                continue
            questions.append(line)
            if len(questions) >= self.max_items:
                break
        return main_text, questions
