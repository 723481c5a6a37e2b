import hmac
import logging
import os
import time
from datetime import date

from flask import Flask, request, jsonify, render_template, redirect, url_for, flash, abort
from flask_cors import CORS
from firebase_admin import credentials, firestore, initialize_app

from careerpath import auth
from careerpath.auth import IdentityClient, login_required, api_login_required, get_current_user
from careerpath.calendar_view import build_month_grid, month_range, parse_month, parse_tasks
from careerpath.config import Config
from careerpath.ml.engine import Engine, GenerationError, parse_questions
from careerpath.models import db
from careerpath.store import DocumentStore
from careerpath.uploads import profile_upload_target, upload_auth_params
from careerpath.voice import CallRegistry, KINDS, build_start_payload

logger = logging.getLogger(__name__)

firebase_initialized = False


def init_firebase(cred_path):
    global firebase_initialized
    if not firebase_initialized and cred_path and os.path.exists(cred_path):
        initialize_app(credentials.Certificate(cred_path))
        firebase_initialized = True
        logger.info("Firebase Admin SDK initialised from %s", cred_path)
    return firebase_initialized


def create_app(config_object=None, store=None, engine=None, identity=None):
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_object(config_object or Config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"].split(",")}})

    db.init_app(app)
    with app.app_context():
        db.create_all()

    # Per-IP limit on the JSON API in production (RATE_LIMIT requests a minute)
    rate_store = app.extensions["rate_limits"] = {}

    @app.before_request
    def _rate_limit():
        if os.environ.get("ENV", "development") != "production" or not request.path.startswith("/api/"):
            return None
        ip = request.remote_addr or "unknown"
        now = int(time.time())
        window = 60
        for idle in [k for k, hits in rate_store.items() if now - hits[-1] >= window]:
            del rate_store[idle]
        bucket = [t for t in rate_store.get(ip, []) if now - t < window]
        if len(bucket) >= app.config["RATE_LIMIT"]:
            logger.warning("Rate limited %s", ip)
            return jsonify({"error": "rate_limited", "retry_after": window}), 429
        bucket.append(now)
        rate_store[ip] = bucket
        return None

    if store is None or identity is None:
        init_firebase(app.config["FIREBASE_CREDENTIALS_PATH"])
    if store is None and firebase_initialized:
        store = DocumentStore(firestore.client())
    if store is None:
        logger.warning("Document store is not configured; data pages will fail")

    app.extensions["store"] = store
    app.extensions["engine"] = engine or Engine(app.config["GEMINI_MODEL"], api_key=app.config["GOOGLE_API_KEY"])
    app.extensions["identity"] = identity or IdentityClient(app.config["FIREBASE_API_KEY"])
    app.extensions["calls"] = CallRegistry(ttl=app.config["VOICE_CALL_TTL"])

    def docs():
        if app.extensions["store"] is None:
            abort(503)
        return app.extensions["store"]

    def ai():
        return app.extensions["engine"]

    calls = app.extensions["calls"]

    @app.context_processor
    def inject_user():
        return {"current_user": get_current_user()}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # --- Helpers -----------------------------------------------------------
    def set_session_cookie(response, value, max_age):
        response.set_cookie(
            auth.SESSION_COOKIE,
            value,
            max_age=max_age,
            httponly=True,
            secure=app.config.get("SESSION_COOKIE_SECURE", False),
            samesite="Lax",
            path="/",
        )
        return response

    def clear_session():
        auth.sign_out(request.cookies.get(auth.SESSION_COOKIE))

    def generate_quiz_for_note(user_id, note_id, notes):
        """The stored quiz as ``{id, quiz}``, or ``None`` when generation or storage fails."""
        try:
            content = ai().generate_quiz(notes)
        except GenerationError:
            return None
        saved = docs().create_quiz(note_id, user_id, content.questions, content.answers)
        if not saved["success"]:
            return None
        return {"id": saved["id"], "quiz": saved["quiz"]}

    def load_quiz_questions(user_id, quiz_id):
        result = docs().get_quiz_by_id(user_id, quiz_id)
        if not result["success"]:
            return None, []
        return result["data"], parse_questions(result["data"].get("questions"))

    def save_event(user, data):
        event_date = (data.get("date") or "").strip()
        title = (data.get("title") or data.get("name") or "").strip()
        if not event_date:
            return {"success": False, "message": "date required"}, 400
        try:
            date.fromisoformat(event_date)
        except ValueError:
            return {"success": False, "message": "date must be YYYY-MM-DD"}, 400
        if not title:
            return {"success": False, "message": "Name is required"}, 400
        result = docs().create_event(
            event_date,
            title,
            (data.get("description") or "").strip(),
            parse_tasks(data.get("tasks")),
            user.uid,
        )
        return result, 200 if result["success"] else 500

    def has_server_secret():
        secret = app.config.get("VAPI_SERVER_SECRET") or ""
        supplied = request.headers.get("X-Vapi-Secret", "")
        return bool(secret) and hmac.compare_digest(secret, supplied)

    # --- Auth pages --------------------------------------------------------
    @app.route("/sign-in", methods=["GET", "POST"])
    def sign_in_page():
        if request.method == "GET":
            return render_template("auth.html", form_type="sign-in", errors={}, values={})
        email = (request.form.get("email") or "").strip()
        password = request.form.get("password") or ""
        errors = auth.validate_auth_form("sign-in", None, email, password)
        if errors:
            return render_template("auth.html", form_type="sign-in", errors=errors, values={"email": email}), 400
        result = auth.sign_in(email, password)
        if not result["success"]:
            flash(result["message"], "error")
            return render_template("auth.html", form_type="sign-in", errors={}, values={"email": email}), 401
        target = request.args.get("next") or url_for("home")
        if not target.startswith("/") or target.startswith("//"):
            target = url_for("home")
        flash("Sign in successfully.", "success")
        return set_session_cookie(redirect(target), result["session"], result["max_age"])

    @app.route("/sign-up", methods=["GET", "POST"])
    def sign_up_page():
        if request.method == "GET":
            return render_template("auth.html", form_type="sign-up", errors={}, values={})
        name = (request.form.get("name") or "").strip()
        email = (request.form.get("email") or "").strip()
        password = request.form.get("password") or ""
        values = {"name": name, "email": email}
        errors = auth.validate_auth_form("sign-up", name, email, password)
        if errors:
            return render_template("auth.html", form_type="sign-up", errors=errors, values=values), 400
        result = auth.sign_up(name, email, password)
        if not result["success"]:
            flash(result["message"], "error")
            return render_template("auth.html", form_type="sign-up", errors={}, values=values), 400
        flash(result["message"], "success")
        return redirect(url_for("sign_in_page"))

    @app.route("/reset", methods=["GET", "POST"])
    def reset_page():
        if request.method == "GET":
            return render_template("reset.html", errors={}, values={})
        email = (request.form.get("email") or "").strip()
        errors = auth.validate_auth_form("reset", None, email, None)
        if errors:
            return render_template("reset.html", errors=errors, values={"email": email}), 400
        result = auth.send_password_reset(email)
        flash(result["message"], "success" if result["success"] else "error")
        if result["success"]:
            return redirect(url_for("sign_in_page"))
        return render_template("reset.html", errors={}, values={"email": email}), 400

    @app.post("/sign-out")
    def sign_out_page():
        clear_session()
        flash("You have been signed out.", "success")
        response = redirect(url_for("sign_in_page"))
        response.delete_cookie(auth.SESSION_COOKIE, path="/")
        return response

    @app.post("/api/logout")
    def api_logout():
        try:
            clear_session()
        except Exception:
            logger.exception("Error during server-side logout")
            return jsonify({"success": False, "message": "Server logout failed."}), 500
        response = jsonify({"success": True, "message": "Logged out successfully."})
        response.delete_cookie(auth.SESSION_COOKIE, path="/")
        return response

    # --- Interviews --------------------------------------------------------
    @app.get("/")
    @login_required
    def home():
        user = get_current_user()
        store = docs()
        interviews = store.get_interviews_by_user_id(user.uid)
        for item in interviews:
            item["feedback"] = store.get_feedback_by_interview_id(item["id"], user.uid)
        latest = store.get_latest_interviews(user.uid) or []
        return render_template("home.html", interviews=interviews, latest=latest)

    @app.get("/interview")
    @login_required
    def interview_generate_page():
        return render_template("agent.html", kind="generate", title="Interview generation", questions=[])

    @app.get("/interview/<interview_id>")
    @login_required
    def interview_page(interview_id):
        interview = docs().get_interview_by_id(interview_id)
        if not interview:
            return redirect(url_for("home"))
        return render_template(
            "agent.html",
            kind="interview",
            title=interview.get("role", "Interview"),
            interview=interview,
            questions=interview.get("questions") or [],
        )

    @app.get("/interview/<interview_id>/feedback")
    @login_required
    def feedback_page(interview_id):
        user = get_current_user()
        interview = docs().get_interview_by_id(interview_id)
        if not interview:
            return redirect(url_for("home"))
        feedback = docs().get_feedback_by_interview_id(interview_id, user.uid)
        if not feedback:
            return redirect(url_for("interview_page", interview_id=interview_id))
        return render_template("feedback.html", interview=interview, feedback=feedback)

    @app.post("/api/interviews/generate")
    def api_generate_interview():
        data = request.get_json(silent=True) or {}
        if has_server_secret():
            user_id = data.get("userid")
        else:
            user = get_current_user()
            user_id = user.uid if user else None
        if not user_id:
            return jsonify({"error": "unauthorized"}), 401
        role = (data.get("role") or "").strip()
        if not role:
            return jsonify({"success": False, "error": "role required"}), 400
        techstack = parse_tasks(data.get("techstack"))
        try:
            amount = int(data.get("amount") or 5)
        except (TypeError, ValueError):
            return jsonify({"success": False, "error": "amount must be a number"}), 400
        try:
            questions = ai().generate_interview_questions(
                role, data.get("level", ""), techstack, data.get("type", ""), amount
            )
        except GenerationError:
            return jsonify({"success": False, "error": "Failed to generate questions"}), 500
        result = docs().create_interview(role, data.get("type", ""), data.get("level", ""), techstack, questions, user_id)
        if not result["success"]:
            return jsonify({"success": False, "error": result["message"]}), 500
        return {"success": True, "data": {"id": result["interviewId"], "questions": questions}}

    # --- Voice calls -------------------------------------------------------
    @app.post("/api/calls")
    @api_login_required
    def api_start_call():
        user = get_current_user()
        data = request.get_json(silent=True) or {}
        kind = data.get("kind")
        if kind not in KINDS:
            return jsonify({"error": "unknown call kind"}), 400
        questions = []
        interview_id = None
        if kind == "interview":
            interview_id = data.get("interviewId")
            interview = docs().get_interview_by_id(interview_id) if interview_id else None
            if not interview:
                return jsonify({"error": "not found"}), 404
            questions = interview.get("questions") or []
        elif kind == "quiz":
            quiz, questions = load_quiz_questions(user.uid, data.get("quizId") or "")
            if not quiz or not questions:
                return jsonify({"error": "not found"}), 404
        call = calls.create(user.uid, kind, interview_id=interview_id)
        payload = build_start_payload(app.config, kind, user.display_name, user.uid, questions)
        return {"callId": call.id, "webToken": app.config["VAPI_WEB_TOKEN"], "start": payload, "state": call.state()}

    @app.get("/api/calls/<call_id>")
    @api_login_required
    def api_call_state(call_id):
        call = calls.get(call_id, get_current_user().uid)
        if not call:
            return jsonify({"error": "not found"}), 404
        return call.state()

    @app.post("/api/calls/<call_id>/events")
    @api_login_required
    def api_call_event(call_id):
        user = get_current_user()
        call = calls.get(call_id, user.uid)
        if not call:
            return jsonify({"error": "not found"}), 404
        event = request.get_json(silent=True) or {}
        if not event.get("type"):
            return jsonify({"error": "type required"}), 400
        call.handle_event(event)
        state = call.state()
        if not call.finished:
            return state

        calls.discard(call.id)
        if call.kind != "interview":
            state["redirect"] = url_for("home")
            return state
        try:
            feedback = ai().generate_feedback(call.transcript())
        except GenerationError:
            logger.error("Error saving feedback for interview %s", call.interview_id)
            state["redirect"] = url_for("home")
            return state
        result = docs().create_feedback(call.interview_id, user.uid, feedback.to_document())
        if result["success"]:
            state["feedbackId"] = result["feedbackId"]
            state["redirect"] = url_for("feedback_page", interview_id=call.interview_id)
        else:
            state["redirect"] = url_for("home")
        return state

    # --- Calendar ----------------------------------------------------------
    @app.route("/calendar", methods=["GET", "POST"])
    @login_required
    def calendar_page():
        user = get_current_user()
        if request.method == "POST":
            result, _ = save_event(user, request.form)
            if result["success"]:
                flash("Event added.", "success")
            else:
                flash(result.get("message") or "Failed to add event", "error")
            event_date = request.form.get("date") or ""
            return redirect(url_for("calendar_page", month=event_date[:7], date=event_date))
        year, month = parse_month(request.args.get("month"))
        start, end = month_range(year, month)
        result = docs().get_events_by_month_range(start, end, user.uid)
        if not result["success"]:
            flash(result["message"], "error")
        events = result.get("data") or []
        selected = request.args.get("date")
        grid = build_month_grid(year, month, events, selected=selected)
        selected_events = [e for e in events if e.get("date") == selected]
        return render_template("calendar.html", grid=grid, selected=selected, selected_events=selected_events)

    @app.get("/api/events")
    @api_login_required
    def api_events():
        user = get_current_user()
        start, end, on = request.args.get("start"), request.args.get("end"), request.args.get("date")
        if on:
            result = docs().get_event_by_date(on, user.uid)
        elif start and end:
            result = docs().get_events_by_month_range(start, end, user.uid)
        else:
            result = docs().get_events(user.uid)
        return jsonify(result), 200 if result["success"] else 500

    @app.post("/api/events")
    @api_login_required
    def api_create_event():
        result, status = save_event(get_current_user(), request.get_json(silent=True) or {})
        return jsonify(result), status

    # --- Notes & quizzes ---------------------------------------------------
    @app.route("/notes", methods=["GET", "POST"])
    @login_required
    def notes_page():
        user = get_current_user()
        if request.method == "POST":
            result = docs().create_notes("New Notes", "", user.uid)
            if result["success"]:
                flash("Created Notes Rerouting now", "success")
                return redirect(url_for("note_page", note_id=result["noteid"]))
            flash("There was an error creating the notes.", "error")
            return redirect(url_for("notes_page"))
        result = docs().get_notes(user.uid)
        notes = result["data"] if result["success"] else []
        return render_template("notes.html", notes=notes)

    @app.route("/notes/<note_id>", methods=["GET", "POST"])
    @login_required
    def note_page(note_id):
        user = get_current_user()
        result = docs().get_note_by_id(user.uid, note_id)
        if not result["success"]:
            flash(result["message"], "error")
            return redirect(url_for("notes_page"))
        note = result["data"]
        if request.method == "POST":
            title = (request.form.get("title") or "").strip()
            if not title:
                return render_template("note.html", note=note, errors={"title": "Title is required"}), 400
            saved = docs().update_notes(title, request.form.get("notes") or "", note_id)
            flash("Note saved successfully!" if saved["success"] else f"Failed to save note: {saved['message']}",
                  "success" if saved["success"] else "error")
            return redirect(url_for("note_page", note_id=note_id))
        return render_template("note.html", note=note, errors={})

    @app.post("/notes/<note_id>/quiz")
    @login_required
    def note_quiz(note_id):
        user = get_current_user()
        result = docs().get_note_by_id(user.uid, note_id)
        if not result["success"]:
            flash(result["message"], "error")
            return redirect(url_for("notes_page"))
        quiz = generate_quiz_for_note(user.uid, note_id, result["data"].get("notes", ""))
        if quiz is None:
            logger.error("Error generating quiz for note %s", note_id)
            flash("An unexpected error occurred while generating the quiz.", "error")
            return redirect(url_for("note_page", note_id=note_id))
        return redirect(url_for("quiz_page", quiz_id=quiz["id"]))

    @app.get("/api/notes")
    @api_login_required
    def api_notes():
        result = docs().get_notes(get_current_user().uid)
        return jsonify(result), 200 if result["success"] else 500

    @app.post("/api/notes")
    @api_login_required
    def api_create_note():
        data = request.get_json(silent=True) or {}
        result = docs().create_notes(data.get("title") or "New Notes", data.get("notes") or "", get_current_user().uid)
        return jsonify(result), 200 if result["success"] else 500

    @app.post("/api/notes/<note_id>")
    @api_login_required
    def api_update_note(note_id):
        user = get_current_user()
        data = request.get_json(silent=True) or {}
        title = (data.get("title") or "").strip()
        if not title:
            return jsonify({"success": False, "message": "Title is required"}), 400
        found = docs().get_note_by_id(user.uid, note_id)
        if not found["success"]:
            status = 404 if found["message"] == "Note not found" else 403
            return jsonify(found), status
        result = docs().update_notes(title, data.get("notes") or "", note_id)
        return jsonify(result), 200 if result["success"] else 500

    @app.get("/api/notes/generate")
    def api_generate_quiz_ping():
        return {"success": True, "data": "Thank You"}

    @app.post("/api/notes/generate")
    @api_login_required
    def api_generate_quiz():
        user = get_current_user()
        data = request.get_json(silent=True) or {}
        note_id, notes = data.get("id"), data.get("notes")
        if data.get("userid") and data["userid"] != user.uid:
            return jsonify({"success": False, "error": "forbidden"}), 403
        if not note_id or notes is None:
            return jsonify({"success": False, "error": "id and notes required"}), 400
        quiz = generate_quiz_for_note(user.uid, note_id, notes)
        if quiz is None:
            logger.error("Error generating quiz for note %s", note_id)
            return jsonify({"success": False, "error": "Failed to generate quiz"}), 500
        return {"success": True, "data": quiz}

    @app.get("/quiz/<quiz_id>")
    @login_required
    def quiz_page(quiz_id):
        quiz, questions = load_quiz_questions(get_current_user().uid, quiz_id)
        if not quiz or not questions:
            return render_template("missing.html", message="Quiz not found or no questions available."), 404
        return render_template("agent.html", kind="quiz", title="AI Quiz Asker", quiz=quiz, questions=questions)

    # --- Profile -----------------------------------------------------------
    @app.get("/resources")
    @login_required
    def resources_page():
        return render_template("resources.html")

    @app.get("/api/profile")
    @api_login_required
    def api_get_profile():
        return get_current_user().to_dict()

    @app.post("/api/profile")
    @api_login_required
    def api_update_profile():
        user = get_current_user()
        data = request.get_json(silent=True) or {}
        result = auth.update_user_details(user.uid, data.get("name"), data.get("profileImageUrl") or user.profile_image)
        return jsonify(result), 200 if result["success"] else 404

    @app.get("/api/upload-auth")
    @api_login_required
    def api_upload_auth():
        try:
            params = upload_auth_params(
                app.config["IMAGEKIT_PRIVATE_KEY"],
                app.config["IMAGEKIT_PUBLIC_KEY"],
                app.config["IMAGEKIT_URL_ENDPOINT"],
                ttl=app.config["UPLOAD_TOKEN_TTL"],
            )
        except ValueError as e:
            logger.error("Upload authentication unavailable: %s", e)
            return jsonify({"error": str(e)}), 503
        filename = request.args.get("filename")
        if filename:
            params.update(profile_upload_target(get_current_user().uid, filename))
            params["urlEndpoint"] = app.config["IMAGEKIT_URL_ENDPOINT"]
        return params

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
