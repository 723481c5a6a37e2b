from careerpath.store import DocumentStore, FEEDBACK, INTERVIEWS, NOTES, QUIZZES, get_random_interview_cover


def _interview(store, user_id, created_at, finalized=True):
    _, ref = store.db.collection(INTERVIEWS).add({
        "role": "Backend",
        "userId": user_id,
        "finalized": finalized,
        "createdAt": created_at,
    })
    return ref.id


def test_random_cover_is_static_image():
    assert get_random_interview_cover().startswith("/static/covers/")


def test_create_interview_stores_finalized_document(store):
    result = store.create_interview("Frontend", "technical", "junior", ["react"], ["Why hooks?"], "u1")

    assert result["success"] is True
    interview = store.get_interview_by_id(result["interviewId"])
    assert interview["id"] == result["interviewId"]
    assert interview["role"] == "Frontend"
    assert interview["finalized"] is True
    assert interview["questions"] == ["Why hooks?"]
    assert interview["coverImage"].startswith("/static/covers/")
    assert interview["createdAt"]


def test_get_interview_by_id_missing(store):
    assert store.get_interview_by_id("nope") is None


def test_interviews_by_user_newest_first(store):
    older = _interview(store, "u1", "2024-01-01T00:00:00")
    newer = _interview(store, "u1", "2024-03-01T00:00:00")
    _interview(store, "u2", "2024-02-01T00:00:00")

    ids = [i["id"] for i in store.get_interviews_by_user_id("u1")]
    assert ids == [newer, older]


def test_latest_interviews_excludes_own_and_drafts(store):
    _interview(store, "u1", "2024-01-01T00:00:00")
    other = _interview(store, "u2", "2024-01-02T00:00:00")
    _interview(store, "u3", "2024-01-03T00:00:00", finalized=False)
    newest = _interview(store, "u3", "2024-01-04T00:00:00")

    latest = store.get_latest_interviews("u1")
    assert [i["id"] for i in latest] == [newest, other]
    assert len(store.get_latest_interviews("u1", limit=1)) == 1


def test_latest_interviews_without_user(store):
    assert store.get_latest_interviews("") is None


def test_feedback_is_scoped_to_user(store):
    created = store.create_feedback("int-1", "u1", {"totalScore": 80})
    assert created["success"] is True

    found = store.get_feedback_by_interview_id("int-1", "u1")
    assert found["id"] == created["feedbackId"]
    assert found["totalScore"] == 80
    assert found["interviewId"] == "int-1"
    assert store.get_feedback_by_interview_id("int-1", "u2") is None


def test_events_queries(store):
    store.create_event("2024-05-01", "Start", "", [], "u1")
    store.create_event("2024-05-31", "End", "", ["wrap up"], "u1")
    store.create_event("2024-06-01", "Next month", "", [], "u1")
    store.create_event("2024-05-10", "Someone else", "", [], "u2")

    assert len(store.get_events("u1")["data"]) == 3

    on_day = store.get_event_by_date("2024-05-31", "u1")
    assert [e["title"] for e in on_day["data"]] == ["End"]

    month = store.get_events_by_month_range("2024-05-01", "2024-05-31", "u1")
    assert month["success"] is True
    assert sorted(e["title"] for e in month["data"]) == ["End", "Start"]


def test_create_event_returns_id(store):
    result = store.create_event("2024-05-01", "Mock", "desc", ["a"], "u1")
    assert result["success"] is True
    assert result["data"]["id"]


def test_notes_lifecycle(store):
    created = store.create_notes("New Notes", "", "u1")
    note_id = created["noteid"]

    assert store.update_notes("Graphs", "<p>BFS</p>", note_id)["success"] is True
    note = store.get_note_by_id("u1", note_id)
    assert note["success"] is True
    assert note["data"]["title"] == "Graphs"
    assert note["data"]["notes"] == "<p>BFS</p>"
    assert [n["id"] for n in store.get_notes("u1")["data"]] == [note_id]


def test_note_access_checks(store):
    note_id = store.create_notes("Mine", "", "u1")["noteid"]

    assert store.get_note_by_id("u1", "missing")["message"] == "Note not found"
    denied = store.get_note_by_id("u2", note_id)
    assert denied["success"] is False
    assert denied["message"] == "Unauthorized access to note"


def test_update_missing_note_reports_failure(store):
    assert store.update_notes("t", "n", "missing")["success"] is False


def test_quiz_create_and_access(store):
    created = store.create_quiz("note-1", "u1", ["Q1"], ["A1"])

    assert created["success"] is True

    assert created["quiz"]["interviewId"] == "note-1"
    assert created["quiz"]["userid"] == "u1"
    found = store.get_quiz_by_id("u1", created["id"])
    assert found["data"]["questions"] == ["Q1"]
    assert store.get_quiz_by_id("u2", created["id"])["message"] == "Unauthorized access to quiz"
    assert store.get_quiz_by_id("u1", "missing")["message"] == "Quiz not found"


def test_store_failures_become_envelopes(firestore_client):
    store = DocumentStore(firestore_client)
    firestore_client.collection(NOTES).fail = True

    assert store.create_notes("t", "n", "u1") == {"success": False, "message": "An error occured"}
    assert store.get_notes("u1")["success"] is False


def test_interview_and_feedback_readers_survive_store_failures(firestore_client):
    store = DocumentStore(firestore_client)
    interview_id = store.create_interview("Backend", "technical", "mid", [], ["Q"], "u1")["interviewId"]
    firestore_client.collection(INTERVIEWS).fail = True
    firestore_client.collection(FEEDBACK).fail = True

    assert store.get_interviews_by_user_id("u1") == []
    assert store.get_latest_interviews("u2") == []
    assert store.get_feedback_by_interview_id(interview_id, "u1") is None


def test_get_interview_by_id_survives_store_failures(firestore_client):
    store = DocumentStore(firestore_client)
    firestore_client.collection(INTERVIEWS).fail = True

    assert store.get_interview_by_id("int-1") is None


def test_create_quiz_failure_is_an_envelope(firestore_client):
    store = DocumentStore(firestore_client)
    firestore_client.collection(QUIZZES).fail = True

    assert store.create_quiz("note-1", "u1", ["Q"], ["A"]) == {"success": False, "message": "An error occured"}
