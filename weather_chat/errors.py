class ChatError(Exception):
    """Base class for failures surfaced to chat callers."""


class ConversationNotFound(ChatError):
    def __init__(self, conversation_id: int):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class ConversationAccessDenied(ChatError):
    def __init__(self, conversation_id: int):
        super().__init__(f"Conversation {conversation_id} is not owned by the caller")
        self.conversation_id = conversation_id


class MessageValidationError(ChatError):
    pass


class ChatProcessingError(ChatError):
    """Raised once the user turn is stored but no reply could be produced."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.detail = detail
