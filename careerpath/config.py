import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev")
    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI", "sqlite:///careerpath.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    RATE_LIMIT = int(os.getenv("RATE_LIMIT", "120"))
    # "session" belongs to the identity provider cookie
    SESSION_COOKIE_NAME = "flask_session"

    # Identity provider
    FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", "serviceAccountKey.json")
    FIREBASE_API_KEY = os.getenv("FIREBASE_API_KEY")
    SESSION_COOKIE_DAYS = int(os.getenv("SESSION_COOKIE_DAYS", "7"))
    SESSION_COOKIE_SECURE = os.getenv("ENV", "development") == "production"

    # Text generation
    GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")

    # Voice agent
    VAPI_WEB_TOKEN = os.getenv("VAPI_WEB_TOKEN", "")
    VAPI_WORKFLOW_ID = os.getenv("VAPI_WORKFLOW_ID", "")
    VAPI_INTERVIEWER_ID = os.getenv("VAPI_INTERVIEWER_ID", "")
    VAPI_QUIZ_INTERVIEWER_ID = os.getenv("VAPI_QUIZ_INTERVIEWER_ID", "")
    VAPI_SERVER_SECRET = os.getenv("VAPI_SERVER_SECRET", "")
    VOICE_CALL_TTL = int(os.getenv("VOICE_CALL_TTL", "3600"))

    # Profile image uploads
    IMAGEKIT_PUBLIC_KEY = os.getenv("IMAGEKIT_PUBLIC_KEY", "")
    IMAGEKIT_PRIVATE_KEY = os.getenv("IMAGEKIT_PRIVATE_KEY", "")
    IMAGEKIT_URL_ENDPOINT = os.getenv("IMAGEKIT_URL_ENDPOINT", "")
    UPLOAD_TOKEN_TTL = int(os.getenv("UPLOAD_TOKEN_TTL", "2400"))

class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SESSION_COOKIE_SECURE = False
    FIREBASE_API_KEY = "test-api-key"
    VAPI_WEB_TOKEN = "web-token"
    VAPI_WORKFLOW_ID = "workflow-id"
    VAPI_INTERVIEWER_ID = "interviewer-id"
    VAPI_QUIZ_INTERVIEWER_ID = "quiz-interviewer-id"
    VAPI_SERVER_SECRET = "server-secret"
    IMAGEKIT_PUBLIC_KEY = "public_test"
    IMAGEKIT_PRIVATE_KEY = "private_test"
    IMAGEKIT_URL_ENDPOINT = "https://ik.imagekit.io/careerpath-test"
