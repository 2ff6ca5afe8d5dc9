# config.py
import os

from dotenv import load_dotenv

load_dotenv()

# --- Firebase ---
FIREBASE_SERVICE_ACCOUNT_JSON = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON", "")
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")

# --- Gemini ---
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_IMAGE_MODEL = os.getenv(
    "GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "60"))
GEMINI_MAX_RETRIES = int(os.getenv("GEMINI_MAX_RETRIES", "2"))

# --- Matching ---
MATCH_STRATEGY = os.getenv("MATCH_STRATEGY", "llm").lower()  # llm | local
MATCH_LIMIT = int(os.getenv("MATCH_LIMIT", "6"))
GENERATE_AVATARS = os.getenv("GENERATE_AVATARS", "1") == "1"
AVATAR_FALLBACK_URL = "https://placehold.co/128x128.png"

# --- Web ---
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
