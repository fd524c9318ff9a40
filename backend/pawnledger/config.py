# backend/pawnledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pawnledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pawnledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Comma separated list of front-end origins allowed by the CORS hook
    CORS_ORIGINS = os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
    )

    # Public URL of the front-end, used for Stripe redirect URLs
    APP_URL = os.environ.get("APP_URL", "http://localhost:3000")

    # Stripe (subscriptions)
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_PRICE_ID_PREMIUM = os.environ.get("STRIPE_PRICE_ID_PREMIUM")

    # Cloudinary (attachments). Format: cloudinary://<key>:<secret>@<cloud>
    CLOUDINARY_URL = os.environ.get("CLOUDINARY_URL")
    STORAGE_FOLDER = os.environ.get("STORAGE_FOLDER", "uploads")
    MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "10"))

    INVOICE_CURRENCY_SYMBOL = os.environ.get("INVOICE_CURRENCY_SYMBOL", "€")

    # bcrypt cost factor
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    SELECTED_BOOK_COOKIE = "selectedBookId"


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    STRIPE_PRICE_ID_PREMIUM = "price_test_premium"
    CLOUDINARY_URL = None
    BCRYPT_ROUNDS = 4
