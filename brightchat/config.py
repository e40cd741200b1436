"""Chat proxy: environment configuration."""

import os

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

CHAT_WEBHOOK_URL = os.getenv(
    "CHAT_WEBHOOK_URL",
    "https://n8n.arkoswearshop.com/webhook/7014a4ca-77e9-4aaf-96c3-d879db448dcf",
)
WEBHOOK_TIMEOUT = float(os.getenv("WEBHOOK_TIMEOUT", "30"))

STATIC_DIR = os.getenv("STATIC_DIR", os.path.join(os.getcwd(), "dist", "public"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))

# Used by the terminal widget, not the server
CHAT_API_URL = os.getenv("CHAT_API_URL", f"http://localhost:{PORT}")
