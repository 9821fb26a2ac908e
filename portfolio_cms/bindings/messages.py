"""
Contact bindings: the public contact form and the admin inbox.
"""
import enum
from typing import List, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from portfolio_cms.bindings.base import ActionResult, ActionStatus, Binding, Confirm, confirmed
from portfolio_cms.schemas import ContactDraft, ContactSubmission
from portfolio_cms.services.content_store import CONTACT_SUBMISSIONS, ContentStore, OrderBy
from portfolio_cms.services.notifications import Notifier

_email = TypeAdapter(EmailStr)


class MessageFilter(str, enum.Enum):
    ALL = "all"
    UNREAD = "unread"
    READ = "read"


def filter_messages(messages: List[ContactSubmission], which: MessageFilter) -> List[ContactSubmission]:
    if which == MessageFilter.UNREAD:
        return [m for m in messages if not m.is_read]
    if which == MessageFilter.READ:
        return [m for m in messages if m.is_read]
    return list(messages)


class ContactFormBinding:
    """Public contact form; inserts a submission and holds no snapshot."""

    SENT = "Message sent successfully! I'll get back to you soon."
    NOT_SENT = "Failed to send message. Please try again."

    def __init__(self, store: ContentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier

    @staticmethod
    def _validate(draft: ContactDraft) -> Optional[str]:
        for field_name in ("name", "email", "message"):
            if not getattr(draft, field_name).strip():
                return f"Please fill in your {field_name}"
        try:
            _email.validate_python(draft.email.strip())
        except ValidationError:
            return "Please enter a valid email address"
        return None

    async def submit(self, draft: ContactDraft) -> ActionResult:
        error = self._validate(draft)
        if error:
            self.notifier.error(error)
            return ActionResult(ActionStatus.INVALID, error)

        result = await self.store.insert(CONTACT_SUBMISSIONS, {
            "name": draft.name.strip(),
            "email": draft.email.strip(),
            "subject": draft.subject.strip() or None,
            "message": draft.message,
        })
        if not result.ok:
            self.notifier.error(self.NOT_SENT)
            return ActionResult(ActionStatus.FAILED, self.NOT_SENT)

        self.notifier.success(self.SENT)
        return ActionResult(ActionStatus.SUCCESS, self.SENT, ContactSubmission.model_validate(result.data))


class MessagesBinding(Binding[List[ContactSubmission]]):
    """Every submission, newest first; read/unread views are derived locally."""

    collections = (CONTACT_SUBMISSIONS,)

    async def _fetch(self):
        return await self.store.query(
            CONTACT_SUBMISSIONS,
            order_by=OrderBy("created_at", descending=True),
        )

    def _build(self, rows) -> List[ContactSubmission]:
        return [ContactSubmission.model_validate(row) for row in rows]

    @property
    def unread_count(self) -> int:
        return sum(1 for m in self._snapshot if not m.is_read)

    def messages_in(self, which: MessageFilter) -> List[ContactSubmission]:
        return filter_messages(self._snapshot, MessageFilter(which))

    def find(self, message_id: str) -> Optional[ContactSubmission]:
        return next((m for m in self._snapshot if m.id == message_id), None)

    async def toggle_read(self, message_id: str) -> ActionResult:
        message = self.find(message_id)
        if message is None:
            return self._fail("Message not found")
        return await self._mutate(
            self.store.update(CONTACT_SUBMISSIONS, message_id, {"is_read": not message.is_read}),
            "Status updated",
            "Failed to update status",
        )

    async def delete(self, message_id: str, confirm: Confirm) -> ActionResult:
        if self.find(message_id) is None:
            return self._fail("Message not found")
        if not await confirmed(confirm, "Are you sure you want to delete this message?"):
            return ActionResult.cancelled()
        return await self._mutate(
            self.store.delete(CONTACT_SUBMISSIONS, message_id),
            "Message deleted",
            "Failed to delete",
        )
