class DeskflowError(Exception):
    """Base class for all errors raised by deskflow."""

class ConversationInputError(DeskflowError):
    """Bad inbound event: unknown conversation, empty text, stale action id."""

    def __init__(self, message: str, conversation_id: str = None):
        super().__init__(message)
        self.conversation_id = conversation_id

class ContextStoreError(DeskflowError):
    """The context store could not read or persist a conversation."""

class RecordCreationError(DeskflowError):
    """A record sink failed to create a record."""

class RecordTableUnavailable(RecordCreationError):
    def __init__(self, table: str):
        super().__init__(f"Record table '{table}' is not available")
        self.table = table

class FlowDefinitionError(DeskflowError):
    """A flow definition violates its structural rules."""
