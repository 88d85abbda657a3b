"""
Chatbot error taxonomy.

Data-gathering failures degrade the context instead of aborting an answer,
generation failures degrade to a fixed apology, and only rebuild failures
reach the (admin) caller with detail. The HTTP layer maps the remaining
exceptions to status codes via ``http_status``.
"""


class ChatbotError(Exception):
    """Base class for chatbot pipeline errors."""

    http_status = 500
    public_message = "The chatbot service failed to process the request."
    # When False, clients only ever see public_message
    expose_detail = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)


class ChatValidationError(ChatbotError):
    """Malformed query or history, rejected before any retrieval."""

    http_status = 400
    public_message = "Query is required"
    expose_detail = True


class RetrievalError(ChatbotError):
    """A single structured lookup failed."""


class IndexNotReady(ChatbotError):
    """The vector collection has not been created yet."""

    http_status = 503
    public_message = "The exam knowledge base is not available right now."


class EmbeddingUnavailable(ChatbotError):
    """The embedding endpoint could not produce a usable vector."""

    http_status = 503
    public_message = "The exam knowledge base is not available right now."


class GenerationFailure(ChatbotError):
    """The chat-completion endpoint returned nothing usable."""


class RebuildFailure(ChatbotError):
    """The rebuild could not start, e.g. the source data failed to load."""

    expose_detail = True
