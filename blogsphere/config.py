"""Application settings, read once from the environment (and a local .env)."""
import os
import logging
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()

#################
# Paths
#################
BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

#################
# JWT
#################
SECRET_KEY = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY", "your-secret-key-change-this")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "1"))
ACCESS_TOKEN_COOKIE = "access_token"

#################
# MongoDB
#################
MONGODB_URL = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "blogsphere")

#################
# Server
#################
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
LOG_FILE = os.getenv("LOG_FILE") or None

# Accounts registered with one of these emails get the Admin role
ADMIN_EMAILS = {email.strip().lower() for email in os.getenv("ADMIN_EMAILS", "").split(",") if email.strip()}

POSTS_PER_PAGE = 10

ROLE_USER = "User"
ROLE_ADMIN = "Admin"
