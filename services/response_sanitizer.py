# services/response_sanitizer.py
"""
Recovers a quiz question list from free-form model output.

Pipeline: clean (fences, control characters, typography) -> locate the outer
JSON object -> brace-balance check -> json.loads -> repair (trailing commas,
inner quotes of known string fields) -> line-oriented repair -> shape
validation.

The repair heuristics are best-effort only. They never invent question
content: anything still unparseable after every stage is reported as a
failure with a snippet of the raw output.
"""
import json
import logging
import re
from typing import Any, List, Set

from config import settings
from core.domain import Difficulty, ParseError, ParseOk, ParseResult, QuestionType, QuizQuestion
from core.exceptions import QuizParseError

logger = logging.getLogger(settings.LOGGER_NAME)

RAW_SNIPPET_LENGTH = 500
MIN_JSON_LENGTH = 10

REPAIRABLE_FIELDS = ("question", "explanation", "correctAnswer")
_FIELD_ALTERNATION = "|".join(REPAIRABLE_FIELDS)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_TRAILING_COMMA_PATTERN = re.compile(r",(\s*[}\]])")
_ESCAPE_MARKER = "\x01"  # control characters are stripped during cleaning, so this cannot collide

# The value ends at the first quote that is followed by another key, or by a closing bracket
_FIELD_VALUE_PATTERN = re.compile(
    r'("(?:' + _FIELD_ALTERNATION + r')"\s*:\s*")'
    r'(.*?)'
    r'"(?=\s*(?:,\s*"[A-Za-z_]\w*"\s*:|,?\s*[}\]]))',
    re.DOTALL,
)
_LINE_FIELD_PATTERN = re.compile(
    r'^(?P<head>.*?"(?:' + _FIELD_ALTERNATION + r')"\s*:\s*)"(?P<body>.*)"(?P<tail>\s*,?\s*)$'
)
_UNESCAPED_QUOTE_PATTERN = re.compile(r'(?<!\\)"')

_TYPOGRAPHY_TABLE = str.maketrans({
    "“": '"', "”": '"', "„": '"', "‟": '"', "″": '"',
    "‘": "'", "’": "'", "‚": "'", "‛": "'", "′": "'",
    "…": "...",
    "–": "-", "—": "-",
})


# -----------------------------
# Cleaning
# -----------------------------
def strip_markdown_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text)


def strip_control_characters(text: str) -> str:
    """Drop control/non-printable characters, keeping newline, carriage return and tab."""
    return _CONTROL_PATTERN.sub("", text)


def normalize_typography(text: str) -> str:
    """Smart quotes, ellipses and en/em dashes to their ASCII equivalents."""
    return text.translate(_TYPOGRAPHY_TABLE)


def clean_response_content(text: str) -> str:
    return normalize_typography(strip_control_characters(strip_markdown_fences(text))).strip()


# -----------------------------
# Locating the object
# -----------------------------
def extract_json_object(text: str) -> str:
    """Substring from the first '{' to the last '}'."""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        raise QuizParseError("No valid JSON object found in response")

    candidate = text[first:last + 1]
    if len(candidate) < MIN_JSON_LENGTH:
        raise QuizParseError("Extracted JSON is too short to be valid")
    return candidate


def has_balanced_braces(text: str) -> bool:
    """String-aware brace balance: braces inside string literals and escapes are ignored."""
    if not text.startswith("{") or not text.endswith("}"):
        return False

    depth = 0
    in_string = False
    escaped = False
    for char in text:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if not in_string:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
    return depth == 0 and not in_string


# -----------------------------
# Repair heuristics
# -----------------------------
def strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_PATTERN.sub(r"\1", text)


def _escape_quotes(content: str) -> str:
    return (
        content.replace('\\"', _ESCAPE_MARKER)
        .replace('"', '\\"')
        .replace(_ESCAPE_MARKER, '\\"')
    )


def escape_inner_quotes(text: str) -> str:
    """Escape bare double quotes inside question/explanation/correctAnswer string values."""
    return _FIELD_VALUE_PATTERN.sub(
        lambda m: m.group(1) + _escape_quotes(m.group(2)) + '"',
        text,
    )


def repair_line_by_line(text: str) -> str:
    """
    Last resort for pretty-printed output: on lines assigning one of the known
    string fields, escape every quote in the value not already preceded by a
    backslash. Lines holding several fields are left to fail loudly.
    """
    repaired = []
    for line in text.split("\n"):
        match = _LINE_FIELD_PATTERN.match(line)
        if match:
            body = _UNESCAPED_QUOTE_PATTERN.sub(r'\\"', match.group("body"))
            line = f'{match.group("head")}"{body}"{match.group("tail")}'
        repaired.append(line)
    return "\n".join(repaired)


def _is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
        return True
    except ValueError:
        return False


def try_repair(raw: str) -> str:
    """
    Best-effort JSON text for `raw`: cleaned, cut to the outer object and,
    if needed, repaired. The result is not guaranteed to parse.

    Raises:
        QuizParseError: If no JSON object can be located at all
    """
    candidate = extract_json_object(clean_response_content(raw))

    if has_balanced_braces(candidate):
        if _is_valid_json(candidate):
            return candidate
        logger.info("Initial JSON parse failed, attempting repair...")
    else:
        logger.info("Unbalanced braces in model output, skipping straight to repair")

    without_commas = strip_trailing_commas(candidate)
    repaired = escape_inner_quotes(without_commas)
    if _is_valid_json(repaired):
        return repaired

    logger.info("Repair attempt failed, trying line-by-line fixes...")
    return repair_line_by_line(without_commas)


# -----------------------------
# Validation
# -----------------------------
def _to_question(raw: Any, index: int, seen_ids: Set[str]) -> QuizQuestion:
    if not isinstance(raw, dict):
        raise QuizParseError(f"Question {index + 1} is missing or invalid")

    text = raw.get("question")
    if not isinstance(text, str) or not text.strip():
        raise QuizParseError(f"Question {index + 1} is missing or invalid")

    raw_type = raw.get("type")
    question_type = (
        QuestionType(raw_type)
        if isinstance(raw_type, str) and raw_type in {t.value for t in QuestionType}
        else QuestionType.MCQ
    )

    options = raw.get("options")
    if question_type is not QuestionType.MCQ or not isinstance(options, list):
        options = None

    explanation = raw.get("explanation")
    raw_difficulty = raw.get("difficulty")
    difficulty = (
        Difficulty(raw_difficulty)
        if isinstance(raw_difficulty, str) and raw_difficulty in {d.value for d in Difficulty}
        else Difficulty.MEDIUM
    )

    question_id = str(raw.get("id") or f"q{index + 1}")
    if question_id in seen_ids:
        question_id = f"q{index + 1}"
    seen_ids.add(question_id)

    return QuizQuestion(
        id=question_id,
        type=question_type,
        question=text.strip(),
        options=options,
        correct_answer=raw.get("correctAnswer"),
        explanation=explanation.strip() if isinstance(explanation, str) else "",
        difficulty=difficulty,
    )


def questions_from_payload(parsed: Any) -> List[QuizQuestion]:
    """Validate a decoded {"questions": [...]} payload. One bad item fails the batch."""
    if not isinstance(parsed, dict):
        raise QuizParseError("Parsed result is not an object")

    items = parsed.get("questions")
    if not isinstance(items, list):
        raise QuizParseError("Invalid quiz format: missing questions array")
    if not items:
        raise QuizParseError("No questions found in the response")

    seen_ids: Set[str] = set()
    return [_to_question(item, index, seen_ids) for index, item in enumerate(items)]


class ResponseSanitizer:
    """Turns raw model output into a validated question list."""

    def try_parse(self, raw: str) -> ParseResult:
        snippet = (raw or "")[:RAW_SNIPPET_LENGTH]
        logger.debug(f"Raw AI response length: {len(raw or '')}, preview: {snippet[:200]}")
        try:
            parsed = json.loads(try_repair(raw or ""))
            questions = questions_from_payload(parsed)
        except QuizParseError as e:
            reason = e.reason
        except ValueError as e:
            reason = f"Invalid JSON after repair: {e}"
        else:
            logger.info(f"Successfully parsed {len(questions)} questions")
            return ParseOk(questions=questions)

        logger.error(f"Failed to parse quiz response: {reason}")
        logger.error(f"Content that failed to parse (first {RAW_SNIPPET_LENGTH} chars): {snippet}")
        return ParseError(reason=reason, raw_snippet=snippet)

    def parse(self, raw: str) -> List[QuizQuestion]:
        """
        Raises:
            QuizParseError: If no valid question list can be recovered
        """
        result = self.try_parse(raw)
        if isinstance(result, ParseError):
            raise QuizParseError(result.reason, result.raw_snippet)
        return result.questions
