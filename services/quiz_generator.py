# services/quiz_generator.py
import asyncio
import dataclasses
import logging
from typing import Dict, List, Optional

from config import settings
from core.domain import QuestionMix, QuestionType, QuizOptions, QuizQuestion
from core.exceptions import (
    InsufficientContentError,
    QuizGenerationError,
    QuizParseError,
    TextGenerationError,
)
from core.interfaces import ITextGenerationBackend
from services.response_sanitizer import ResponseSanitizer

logger = logging.getLogger(settings.LOGGER_NAME)

MCQ_OPTION_COUNT = 4

QUIZ_SYSTEM_PROMPT = (
    "You are an expert quiz generator. Create high-quality educational questions based on the "
    "provided content. CRITICAL: You must respond ONLY with valid JSON format. Do not include any "
    "explanatory text before or after the JSON. Start your response with { and end with }. Use only "
    'straight double quotes (") for JSON strings, never use curly quotes or other quote variants.'
)

TYPE_INSTRUCTIONS = {
    QuestionMix.MIXED: "Mix of multiple choice (4 options) and true/false questions",
    QuestionMix.MCQ: "Multiple choice questions with 4 options each",
    QuestionMix.TRUE_FALSE: "True/false questions only",
}


def build_quiz_prompt(text: str, options: QuizOptions) -> str:
    count = options.num_questions
    difficulty = options.difficulty.value
    return f"""
Based on the following text, generate {count} {difficulty} difficulty quiz questions.

Question Type: {TYPE_INSTRUCTIONS[options.question_type]}

Text Content:
{text}

Requirements:
1. Questions should test understanding of key concepts from the text
2. For MCQ: Provide exactly 4 options with one correct answer
3. For True/False: Create statements that can be clearly true or false based on the text
4. Include explanations for each correct answer
5. Ensure questions are {difficulty} difficulty level
6. Use only standard double quotes (") in the JSON response
7. Escape any quotes within text content using \\"

IMPORTANT: Respond ONLY with valid JSON. No additional text, code blocks, or explanations outside the JSON.

Response Format (JSON):
{{
  "questions": [
    {{
      "id": "q1",
      "type": "mcq",
      "question": "Question text here?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": "Option A",
      "explanation": "Explanation of why this is correct",
      "difficulty": "{difficulty}"
    }},
    {{
      "id": "q2",
      "type": "true_false",
      "question": "Statement to evaluate",
      "correctAnswer": true,
      "explanation": "Explanation of the answer",
      "difficulty": "{difficulty}"
    }}
  ]
}}

Generate exactly {count} questions following this format. Return ONLY the JSON object - no code blocks, no explanatory text."""


def _check_question(question: QuizQuestion, position: int, mix: QuestionMix) -> QuizQuestion:
    """Enforce the per-type shape; returns the question with a normalised answer."""
    if mix is not QuestionMix.MIXED and question.type.value != mix.value:
        raise QuizParseError(f"Question {position} is {question.type.value}, expected {mix.value}")

    if question.type is QuestionType.MCQ:
        if not question.options or len(question.options) != MCQ_OPTION_COUNT:
            raise QuizParseError(f"Question {position} must have exactly {MCQ_OPTION_COUNT} options")
        if question.correct_answer not in question.options:
            raise QuizParseError(f"Question {position} has a correct answer that is not one of its options")
        return question

    answer = question.correct_answer
    if isinstance(answer, str) and answer.strip().lower() in ("true", "false"):
        answer = answer.strip().lower() == "true"
    if not isinstance(answer, bool):
        raise QuizParseError(f"Question {position} needs a true/false answer")
    return dataclasses.replace(question, correct_answer=answer, options=None)


class QuizGenerator:
    """Prompts the text backend for a quiz and validates what comes back."""

    def __init__(
        self,
        backend: ITextGenerationBackend,
        model: str = settings.DEFAULT_TEXT_MODEL,
        sanitizer: Optional[ResponseSanitizer] = None,
    ):
        self.backend = backend
        self.model = model
        self.sanitizer = sanitizer or ResponseSanitizer()

    def _messages(self, text: str, options: QuizOptions) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": QUIZ_SYSTEM_PROMPT},
            {"role": "user", "content": build_quiz_prompt(text, options)},
        ]

    async def generate(
        self, text: str, options: Optional[QuizOptions] = None, model: Optional[str] = None
    ) -> List[QuizQuestion]:
        """
        Generate quiz questions grounded in `text`.

        Raises:
            InsufficientContentError: If the text is shorter than the minimum after trimming
            QuizGenerationError: If the backend call or response parsing fails
        """
        if len((text or "").strip()) < settings.MIN_QUIZ_TEXT_LENGTH:
            raise InsufficientContentError("Insufficient content for quiz generation")

        options = options or QuizOptions()
        model = model or self.model
        logger.info(
            f"Generating {options.num_questions} {options.difficulty.value} "
            f"{options.question_type.value} questions with '{model}'"
        )

        try:
            raw = await asyncio.to_thread(
                self.backend.complete,
                self._messages(text, options),
                model,
                settings.QUIZ_TEMPERATURE,
                settings.QUIZ_MAX_TOKENS,
            )
            questions = self.sanitizer.parse(raw)
            return [
                _check_question(q, position, options.question_type)
                for position, q in enumerate(questions, start=1)
            ]
        except (TextGenerationError, QuizParseError) as e:
            logger.error(f"Quiz generation failed: {e}")
            raise QuizGenerationError(f"Failed to generate quiz: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error during quiz generation: {e}", exc_info=True)
            raise QuizGenerationError(f"Failed to generate quiz: {e}") from e
