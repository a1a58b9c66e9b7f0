"""Service layer combining repositories, context, providers and hooks."""

from retort.services.conversation import Continuation, ConversationService, SendOutcome

__all__ = ["Continuation", "ConversationService", "SendOutcome"]
