# tests/test_context_builder.py
from datetime import datetime, timezone

import pytest

from core.domain import AttachmentKind, ChatAttachment, ChatConfig, ChatMessage, ChatSession, MessageRole
from services.context_builder import ContextBuilder, estimate_token_count, get_context_limit

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_session(messages=(), documents=()) -> ChatSession:
    return ChatSession(
        id="session-test",
        title="Biology",
        model="llama-3.1-70b-versatile",
        created_at=NOW,
        updated_at=NOW,
        messages=[
            ChatMessage(id=f"msg-{i}", role=role, content=content, timestamp=NOW)
            for i, (role, content) in enumerate(messages)
        ],
        documents=list(documents),
    )


@pytest.mark.parametrize("text, tokens", [("", 0), ("abcd", 1), ("abcde", 2), ("a" * 400, 100)])
def test_estimate_token_count(text, tokens):
    assert estimate_token_count(text) == tokens


def test_context_limit_uses_model_table_and_percentage():
    assert get_context_limit("llama-3.1-70b-versatile", 80) == 104857
    assert get_context_limit("mixtral-8x7b-32768", 50) == 16384
    assert get_context_limit("some-unknown-model", 50) == 4096


def test_build_orders_prompt_documents_history():
    document = ChatAttachment(
        id="attachment-1", name="cells.pdf", type=AttachmentKind.DOCUMENT, size=10, content="x" * 3000
    )
    session = make_session(
        messages=[(MessageRole.USER, "What is a cell?"), (MessageRole.ASSISTANT, "The unit of life.")],
        documents=[document],
    )
    config = ChatConfig(system_prompt="You are a tutor.")

    context = ContextBuilder().build(session, config)

    assert context.startswith("You are a tutor.\n\nSTUDENT STUDY MATERIALS:\n")
    assert 'Document 1: "cells.pdf"\nType: document\n' in context
    assert "Content Summary: " + "x" * 2000 + "...\n---\n\n" in context
    assert "x" * 2001 not in context
    assert context.index("INSTRUCTIONS FOR USING STUDY MATERIALS") < context.index("CONVERSATION HISTORY")
    assert context.endswith("CONVERSATION HISTORY:\nStudent: What is a cell?\nTutor: The unit of life.\n\n")


def test_short_document_has_no_ellipsis():
    document = ChatAttachment(id="a", name="n.txt", type=AttachmentKind.DOCUMENT, size=1, content="short")
    context = ContextBuilder().build(make_session(documents=[document]), ChatConfig(system_prompt="S"))
    assert "Content Summary: short\n" in context


def test_document_context_can_be_disabled():
    document = ChatAttachment(id="a", name="n.txt", type=AttachmentKind.DOCUMENT, size=1, content="short")
    config = ChatConfig(system_prompt="S", enable_document_context=False)

    context = ContextBuilder().build(make_session(documents=[document]), config)

    assert "STUDENT STUDY MATERIALS" not in context


def test_history_walk_stops_at_first_message_that_does_not_fit():
    # Unknown model at 1% -> 81 tokens; "S\n\n" costs 1, each long message 50
    session = make_session(messages=[
        (MessageRole.USER, "tiny"),
        (MessageRole.ASSISTANT, "b" * 200),
        (MessageRole.USER, "c" * 200),
    ])
    config = ChatConfig(selected_model="unknown-model", system_prompt="S", context_limit=1)

    context = ContextBuilder().build(session, config)

    assert "Student: " + "c" * 200 in context
    assert "b" * 200 not in context
    assert "tiny" not in context


def test_no_history_block_for_empty_session():
    context = ContextBuilder().build(make_session(), ChatConfig(system_prompt="S"))
    assert context == "S\n\n"


def test_build_messages_mirrors_selection():
    session = make_session(messages=[(MessageRole.USER, "Hi"), (MessageRole.ASSISTANT, "Hello!")])

    messages = ContextBuilder().build_messages(session, ChatConfig(system_prompt="Tutor prompt"))

    assert messages == [
        {"role": "system", "content": "Tutor prompt"},
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello!"},
    ]
