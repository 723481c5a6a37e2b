"""Server-side mirror of the browser voice agent.

The voice SDK runs in the page; the page forwards each SDK event here so the
call's status, speaking indicator and final transcript live on the server.
When an interview call ends the collected transcript feeds feedback
generation.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

KINDS = ("generate", "interview", "quiz")


class CallStatus(str, Enum):
    INACTIVE = "INACTIVE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"


@dataclass
class SavedMessage:
    role: str
    content: str


@dataclass
class VoiceCall:
    user_id: str
    kind: str
    interview_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: CallStatus = CallStatus.INACTIVE
    is_speaking: bool = False
    messages: List[SavedMessage] = field(default_factory=list)
    last_message: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)

    def handle_event(self, event: Dict) -> None:
        kind = event.get("type")
        if kind == "call-start":
            self.status = CallStatus.ACTIVE
        elif kind == "call-end":
            self.status = CallStatus.FINISHED
            self.is_speaking = False
        elif kind == "message":
            self._on_message(event.get("message") or {})
        elif kind == "speech-start":
            self.is_speaking = True
        elif kind == "speech-end":
            self.is_speaking = False
        elif kind == "error":
            logger.error("Voice agent error on call %s: %s", self.id, event.get("error"))
        else:
            logger.debug("Ignoring voice event %r on call %s", kind, self.id)

    def _on_message(self, message: Dict) -> None:
        if message.get("type") != "transcript" or message.get("transcriptType") != "final":
            return
        text = message.get("transcript", "")
        self.messages.append(SavedMessage(role=message.get("role", "user"), content=text))
        self.last_message = text

    @property
    def finished(self) -> bool:
        return self.status == CallStatus.FINISHED

    def transcript(self) -> List[Dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self.messages]

    def state(self) -> Dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "status": self.status.value,
            "isSpeaking": self.is_speaking,
            "lastMessage": self.last_message,
            "messageCount": len(self.messages),
        }


class CallRegistry:
    """In-memory calls keyed by id.

    A call normally leaves the registry when its end event arrives; calls
    older than ``ttl`` seconds (closed tabs, dropped connections) are evicted
    whenever a new call is created.
    """

    def __init__(self, ttl=3600):
        self.ttl = timedelta(seconds=ttl)
        self._calls: Dict[str, VoiceCall] = {}
        self._lock = threading.Lock()

    def create(self, user_id, kind, interview_id=None) -> VoiceCall:
        if kind not in KINDS:
            raise ValueError(f"Unknown call kind: {kind}")
        call = VoiceCall(user_id=user_id, kind=kind, interview_id=interview_id, status=CallStatus.CONNECTING)
        with self._lock:
            self._evict_expired(call.created_at)
            self._calls[call.id] = call
        logger.info("Started %s call %s for %s", kind, call.id, user_id)
        return call

    def get(self, call_id, user_id) -> Optional[VoiceCall]:
        with self._lock:
            call = self._calls.get(call_id)
        if call is None or call.user_id != user_id:
            return None
        if datetime.utcnow() - call.created_at > self.ttl:
            self.discard(call_id)
            return None
        return call

    def discard(self, call_id) -> None:
        with self._lock:
            self._calls.pop(call_id, None)

    def _evict_expired(self, now) -> None:
        expired = [cid for cid, c in self._calls.items() if now - c.created_at > self.ttl]
        for cid in expired:
            del self._calls[cid]
        if expired:
            logger.info("Evicted %d stale voice calls", len(expired))

    def __len__(self):
        return len(self._calls)


def format_questions(questions) -> str:
    if not questions:
        logger.warning("No questions provided for the agent to ask.")
        return ""
    return "\n".join(f"- {q}" for q in questions)


def build_start_payload(config, kind, user_name, user_id, questions=None) -> Dict:
    """Arguments for the browser SDK's ``start`` call."""
    if kind == "generate":
        return {
            "assistant": config["VAPI_WORKFLOW_ID"],
            "options": {"variableValues": {"username": user_name, "userid": user_id}},
        }
    if kind == "interview":
        return {
            "assistant": config["VAPI_INTERVIEWER_ID"],
            "options": {"variableValues": {"questions": format_questions(questions)}},
        }
    if kind == "quiz":
        return {
            "assistant": config["VAPI_QUIZ_INTERVIEWER_ID"],
            "options": {
                "variableValues": {
                    "questions": format_questions(questions),
                    "username": user_name,
                    "userid": user_id,
                },
                "clientMessages": [],
                "serverMessages": [],
            },
        }
    raise ValueError(f"Unknown call kind: {kind}")
