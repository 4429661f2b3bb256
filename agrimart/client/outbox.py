"""
Client-side message outbox.

A message is shown in the thread as soon as it is written and then moves
through ``PENDING -> SENT`` or ``PENDING -> FAILED``. Failed messages stay in
the queue and are retried, in order, on every flush; a later success moves
them to ``SENT``. Conversations that could not be created on the server yet
get a negative temporary id which is swapped for the real id on flush.
"""

from agrimart.errors import AppError
from dataclasses import dataclass, field
from datetime import datetime
import enum
import itertools
import logging
import threading

logger = logging.getLogger(__name__)

FLUSH_BATCH = 20


class MessageState(enum.Enum):
    PENDING = 'pending'
    SENT = 'sent'
    FAILED = 'failed'


@dataclass
class LocalMessage:
    local_id: int
    conversation_id: int
    sender_id: int
    text: str
    created_at: datetime
    state: MessageState = MessageState.PENDING
    remote_id: int = None
    tries: int = 0
    last_error: str = None

    def to_dict(self):
        return {
            'id': self.remote_id,
            'local_id': self.local_id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'text': self.text,
            'created_at': self.created_at.isoformat(),
            'state': self.state.value,
        }


@dataclass
class PendingConversation:
    temp_id: int
    participant_ids: list = field(default_factory=list)


class MessageOutbox:

    def __init__(self, api, sender_id, clock=datetime.utcnow):
        self.api = api
        self.sender_id = sender_id
        self._clock = clock
        self._local_ids = itertools.count(1)
        self._temp_ids = itertools.count(1)
        self._queue = []
        self._messages = []
        self._pending_conversations = {}
        # temporary id -> server id, kept so stale references still resolve
        self._resolved = {}
        # send() and the background flusher share the queue.
        self._lock = threading.RLock()

    # Conversations

    def create_pending_conversation(self, participant_ids) -> int:
        temp_id = -next(self._temp_ids)
        self._pending_conversations[temp_id] = PendingConversation(
            temp_id, sorted(set(participant_ids)))
        return temp_id

    def resolve_conversation_id(self, conversation_id):
        return self._resolved.get(conversation_id, conversation_id)

    def _ensure_remote_conversation(self, conversation_id) -> int:
        conversation_id = self.resolve_conversation_id(conversation_id)
        if conversation_id > 0:
            return conversation_id

        pending = self._pending_conversations.get(conversation_id)
        if pending is None:
            raise AppError('Pending conversation not found')

        created = self.api.post(
            '/conversations', json={'user_ids': pending.participant_ids})
        real_id = None
        if isinstance(created, dict) and created.get('id'):
            real_id = int(created['id'])
        if not real_id:
            raise AppError('Failed to create conversation')

        self._reconcile(conversation_id, real_id)
        return real_id

    def _reconcile(self, temp_id, real_id):
        self._resolved[temp_id] = real_id
        self._pending_conversations.pop(temp_id, None)
        for msg in self._messages:
            if msg.conversation_id == temp_id:
                msg.conversation_id = real_id
        logger.info("Conversation %s is now %s", temp_id, real_id)

    # Sending

    @property
    def queued(self):
        return list(self._queue)

    def send(self, conversation_id, text) -> LocalMessage:
        """Write a message locally and try to deliver everything queued."""
        msg = LocalMessage(
            local_id=next(self._local_ids),
            conversation_id=self.resolve_conversation_id(conversation_id),
            sender_id=self.sender_id,
            text=text,
            created_at=self._clock(),
        )
        with self._lock:
            self._messages.append(msg)
            self._queue.append(msg)
            self.flush()
        return msg

    def _deliver(self, msg):
        conversation_id = self._ensure_remote_conversation(
            msg.conversation_id)
        body = self.api.post(
            f'/conversations/{conversation_id}/messages',
            json={'text': msg.text},
        )
        msg.remote_id = body.get('id') if isinstance(body, dict) else None

    def flush(self, limit=FLUSH_BATCH) -> int:
        """Retry queued messages in order. Returns the number delivered.

        A failure marks that message FAILED and moves on; it never stops the
        rest of the queue. Only one flush runs at a time.
        """
        sent = 0
        with self._lock:
            for msg in list(self._queue)[:limit]:
                try:
                    self._deliver(msg)
                except AppError as e:
                    msg.tries += 1
                    msg.last_error = e.message
                    msg.state = MessageState.FAILED
                    logger.info(
                        "Message %s not delivered (try %s): %s",
                        msg.local_id, msg.tries, e.message)
                    continue
                msg.state = MessageState.SENT
                self._queue.remove(msg)
                sent += 1
        return sent

    # Display

    def thread(self, conversation_id, remote_messages=()):
        """Server messages merged with local ones, oldest first.

        A local message whose server copy is already in ``remote_messages``
        is dropped so nothing shows twice.
        """
        conversation_id = self.resolve_conversation_id(conversation_id)
        rows = [dict(m, state=MessageState.SENT.value)
                for m in remote_messages]
        remote_ids = {m.get('id') for m in rows}

        for msg in self._messages:
            if msg.conversation_id != conversation_id:
                continue
            if msg.remote_id is not None and msg.remote_id in remote_ids:
                continue
            rows.append(msg.to_dict())

        rows.sort(key=lambda r: str(r.get('created_at') or ''))
        return rows

    def forget_delivered(self):
        """Drop SENT messages from local display state."""
        with self._lock:
            self._messages = [
                m for m in self._messages if m.state != MessageState.SENT]
