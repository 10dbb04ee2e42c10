# services/context_builder.py
"""
Token-budgeted prompt assembly for chat sessions.

Token counts are estimates (1 token ~ 4 characters); no tokenizer is used.
"""
import logging
import math
from typing import Dict, List

from config import settings
from core.domain import ChatConfig, ChatMessage, ChatSession, MessageRole

logger = logging.getLogger(settings.LOGGER_NAME)

CHARS_PER_TOKEN = 4
DEFAULT_CONTEXT_WINDOW = 8192

# Maximum context window per chat model, in tokens
MODEL_CONTEXT_LIMITS: Dict[str, int] = {
    "llama-3.1-70b-versatile": 131072,
    "llama-3.1-8b-instant": 131072,
    "llama-3.2-11b-text-preview": 8192,
    "llama-3.2-3b-preview": 8192,
    "llama-3.2-1b-preview": 8192,
    "mixtral-8x7b-32768": 32768,
    "gemma-7b-it": 8192,
    "gemma2-9b-it": 8192,
    "llama-3.3-70b-versatile": 32768,
    "openai/gpt-oss-120b": 128000,
    "deepseek-r1-distill-llama-70b": 8192,
    "qwen/qwen3-32b": 32768,
    "moonshotai/kimi-k2-instruct": 32768,
}

STUDY_MATERIALS_HEADER = (
    "STUDENT STUDY MATERIALS:\n"
    "You have access to the following documents that the student has uploaded for learning support:\n\n"
)
STUDY_MATERIALS_INSTRUCTIONS = (
    "INSTRUCTIONS FOR USING STUDY MATERIALS:\n"
    "- Reference specific information from these documents when answering questions\n"
    "- Help the student make connections between different concepts in the materials\n"
    "- Identify key topics and themes across the documents\n"
    "- Suggest study strategies based on the content type and complexity\n"
    "- Point out important definitions, formulas, or concepts for exam preparation\n\n"
)


def estimate_token_count(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def get_context_limit(model: str, limit_percent: int = settings.DEFAULT_CONTEXT_LIMIT_PERCENT) -> int:
    """Effective token budget: floor(model window * percent / 100). Unknown models get 8192."""
    max_tokens = MODEL_CONTEXT_LIMITS.get(model, DEFAULT_CONTEXT_WINDOW)
    return math.floor(max_tokens * limit_percent / 100)


def _speaker(message: ChatMessage) -> str:
    return "Student" if message.role is MessageRole.USER else "Tutor"


class ContextBuilder:
    """Builds the prompt for the next turn of a session within the model's budget."""

    def document_block(self, session: ChatSession, config: ChatConfig) -> str:
        if not config.enable_document_context or not session.documents:
            return ""

        block = STUDY_MATERIALS_HEADER
        for index, doc in enumerate(session.documents, start=1):
            if not doc.content:
                continue
            excerpt = doc.content[: settings.DOCUMENT_CONTEXT_CHARS]
            ellipsis = "..." if len(doc.content) > settings.DOCUMENT_CONTEXT_CHARS else ""
            block += f'Document {index}: "{doc.name}"\n'
            block += f"Type: {doc.type.value}\n"
            block += f"Content Summary: {excerpt}{ellipsis}\n"
            block += "---\n\n"
        return block + STUDY_MATERIALS_INSTRUCTIONS

    def select_history(self, session: ChatSession, config: ChatConfig, used_tokens: int) -> List[ChatMessage]:
        """
        Newest-first walk over the message log, stopping at the first message
        that would overflow the budget. Returned in chronological order.
        """
        limit = get_context_limit(config.selected_model, config.context_limit)
        selected: List[ChatMessage] = []
        for message in reversed(session.messages):
            tokens = estimate_token_count(message.content)
            if used_tokens + tokens > limit:
                break
            selected.append(message)
            used_tokens += tokens
        selected.reverse()
        return selected

    def build(self, session: ChatSession, config: ChatConfig) -> str:
        context = config.system_prompt + "\n\n" + self.document_block(session, config)

        history = self.select_history(session, config, estimate_token_count(context))
        if history:
            context += "CONVERSATION HISTORY:\n"
            for message in history:
                context += f"{_speaker(message)}: {message.content}\n"
            context += "\n"

        logger.debug(
            f"Built context for session {session.id}: {len(history)}/{len(session.messages)} messages, "
            f"~{estimate_token_count(context)} tokens"
        )
        return context

    def build_messages(self, session: ChatSession, config: ChatConfig) -> List[Dict[str, str]]:
        """Same selection as build(), shaped as a chat-completions message list."""
        system = config.system_prompt
        documents = self.document_block(session, config)
        if documents:
            system += "\n\n" + documents.rstrip("\n")

        used = estimate_token_count(config.system_prompt + "\n\n" + documents)
        messages = [{"role": MessageRole.SYSTEM.value, "content": system}]
        messages.extend(
            {"role": m.role.value, "content": m.content}
            for m in self.select_history(session, config, used)
        )
        return messages
