"""Keyed accessors over the hosted document store.

Every collection the application touches gets a small group of methods here.
Writes and list queries report failures through a ``{"success": False,
"message": ...}`` envelope instead of raising, so page handlers can show the
message as-is. Single-document readers return ``None`` and interview lists
return ``[]`` when the store is unreachable.
"""
import logging
import random
from datetime import datetime

from firebase_admin import firestore

logger = logging.getLogger(__name__)

INTERVIEWS = "interviews"
FEEDBACK = "feedback"
EVENTS = "event"
NOTES = "note"
QUIZZES = "quizes"

INTERVIEW_COVERS = [
    "/adobe.svg",
    "/amazon.svg",
    "/facebook.svg",
    "/hostinger.svg",
    "/pinterest.svg",
    "/quora.svg",
    "/reddit.svg",
    "/skype.svg",
    "/spotify.svg",
    "/telegram.svg",
    "/tiktok.svg",
    "/yahoo.svg",
]


def get_random_interview_cover():
    return f"/static/covers{random.choice(INTERVIEW_COVERS)}"


def _now():
    return datetime.utcnow().isoformat()


def _with_id(snapshot):
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


class DocumentStore:
    def __init__(self, client):
        self.db = client

    def _collection(self, name):
        return self.db.collection(name)

    # --- Interviews ------------------------------------------------------
    def get_interviews_by_user_id(self, user_id):
        try:
            docs = (
                self._collection(INTERVIEWS)
                .where("userId", "==", user_id)
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
                .get()
            )
        except Exception:
            logger.exception("Failed to list interviews for %s", user_id)
            return []
        return [_with_id(d) for d in docs]

    def get_latest_interviews(self, user_id, limit=20):
        if not user_id:
            logger.warning("get_latest_interviews called without a user id")
            return None
        try:
            docs = (
                self._collection(INTERVIEWS)
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
                .where("finalized", "==", True)
                .where("userId", "!=", user_id)
                .limit(limit)
                .get()
            )
        except Exception:
            logger.exception("Failed to list latest interviews")
            return []
        return [_with_id(d) for d in docs]

    def get_interview_by_id(self, interview_id):
        try:
            snapshot = self._collection(INTERVIEWS).document(interview_id).get()
        except Exception:
            logger.exception("Failed to get interview %s", interview_id)
            return None
        if not snapshot.exists:
            return None
        return _with_id(snapshot)

    def create_interview(self, role, interview_type, level, techstack, questions, user_id):
        interview = {
            "role": role,
            "type": interview_type,
            "level": level,
            "techstack": techstack,
            "questions": questions,
            "userId": user_id,
            "finalized": True,
            "coverImage": get_random_interview_cover(),
            "createdAt": _now(),
        }
        try:
            _, ref = self._collection(INTERVIEWS).add(interview)
            return {"success": True, "message": "interview created", "interviewId": ref.id}
        except Exception:
            logger.exception("Failed to store interview for %s", user_id)
            return {"success": False, "message": "An error occured"}

    # --- Feedback --------------------------------------------------------
    def create_feedback(self, interview_id, user_id, feedback):
        record = dict(feedback)
        record.update({
            "interviewId": interview_id,
            "userId": user_id,
            "createdAt": _now(),
        })
        try:
            _, ref = self._collection(FEEDBACK).add(record)
            return {"success": True, "feedbackId": ref.id}
        except Exception:
            logger.exception("Failed to store feedback for interview %s", interview_id)
            return {"success": False}

    def get_feedback_by_interview_id(self, interview_id, user_id):
        try:
            docs = list(
                self._collection(FEEDBACK)
                .where("interviewId", "==", interview_id)
                .where("userId", "==", user_id)
                .limit(1)
                .get()
            )
        except Exception:
            logger.exception("Failed to get feedback for interview %s", interview_id)
            return None
        if not docs:
            return None
        return _with_id(docs[0])

    # --- Calendar events -------------------------------------------------
    def create_event(self, date, title, description, tasks, user_id):
        try:
            _, ref = self._collection(EVENTS).add({
                "date": date,
                "title": title,
                "description": description,
                "tasks": tasks,
                "userId": user_id,
            })
            return {"success": True, "message": "event created", "data": {"id": ref.id}}
        except Exception:
            logger.exception("Failed to create event on %s", date)
            return {"success": False, "message": "An error occured"}

    def get_events(self, user_id):
        try:
            docs = self._collection(EVENTS).where("userId", "==", user_id).get()
            return {"success": True, "message": "Got Event", "data": [_with_id(d) for d in docs]}
        except Exception:
            logger.exception("Failed to list events for %s", user_id)
            return {"success": False, "message": "Could not get events"}

    def get_event_by_date(self, date, user_id):
        try:
            docs = (
                self._collection(EVENTS)
                .where("date", "==", date)
                .where("userId", "==", user_id)
                .get()
            )
            return {"success": True, "message": "Got Event", "data": [_with_id(d) for d in docs]}
        except Exception:
            logger.exception("Failed to get events on %s", date)
            return {"success": False, "message": "Could not get events"}

    def get_events_by_month_range(self, start_date, end_date, user_id):
        try:
            docs = (
                self._collection(EVENTS)
                .where("userId", "==", user_id)
                .where("date", ">=", start_date)
                .where("date", "<=", end_date)
                .get()
            )
            return {"success": True, "data": [_with_id(d) for d in docs]}
        except Exception:
            logger.exception("Error fetching events by month range")
            return {"success": False, "message": "Failed to fetch events."}

    # --- Notes -----------------------------------------------------------
    def create_notes(self, title, notes, user_id):
        try:
            _, ref = self._collection(NOTES).add({"title": title, "notes": notes, "userId": user_id})
            return {"success": True, "message": "note created", "noteid": ref.id}
        except Exception:
            logger.exception("Failed to create note for %s", user_id)
            return {"success": False, "message": "An error occured"}

    def get_notes(self, user_id):
        try:
            docs = self._collection(NOTES).where("userId", "==", user_id).get()
            return {"success": True, "message": "Got Notes", "data": [_with_id(d) for d in docs]}
        except Exception:
            logger.exception("Failed to list notes for %s", user_id)
            return {"success": False, "message": "Could not get Notes"}

    def get_note_by_id(self, user_id, note_id):
        try:
            snapshot = self._collection(NOTES).document(note_id).get()
            if not snapshot.exists:
                return {"success": False, "message": "Note not found", "data": None}
            note = _with_id(snapshot)
            if note.get("userId") != user_id:
                return {"success": False, "message": "Unauthorized access to note", "data": None}
            return {"success": True, "message": "Got Note", "data": note}
        except Exception:
            logger.exception("Failed to get note %s", note_id)
            return {"success": False, "message": "Could not get Note", "data": None}

    def update_notes(self, title, notes, note_id):
        try:
            self._collection(NOTES).document(note_id).update({"title": title, "notes": notes})
            return {"success": True, "message": "note updated", "noteid": note_id}
        except Exception:
            logger.exception("Failed to update note %s", note_id)
            return {"success": False, "message": "An error occured"}

    # --- Quizzes ---------------------------------------------------------
    def create_quiz(self, note_id, user_id, questions, answers):
        quiz = {
            "interviewId": note_id,
            "userid": user_id,
            "finalized": True,
            "questions": questions,
            "answers": answers,
        }
        try:
            _, ref = self._collection(QUIZZES).add(quiz)
        except Exception:
            logger.exception("Failed to store quiz for note %s", note_id)
            return {"success": False, "message": "An error occured"}
        return {"success": True, "id": ref.id, "quiz": quiz}

    def get_quiz_by_id(self, user_id, quiz_id):
        try:
            snapshot = self._collection(QUIZZES).document(quiz_id).get()
            if not snapshot.exists:
                return {"success": False, "message": "Quiz not found", "data": None}
            quiz = _with_id(snapshot)
            if quiz.get("userid") != user_id:
                return {"success": False, "message": "Unauthorized access to quiz", "data": None}
            return {"success": True, "message": "Got Quiz", "data": quiz}
        except Exception:
            logger.exception("Failed to get quiz %s", quiz_id)
            return {"success": False, "message": "Could not get Quiz", "data": None}
