# backend/orderflow/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/orderflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///orderflow.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Shipments created without an explicit ETA get now + this many minutes
    SHIPMENT_DEFAULT_ETA_MINUTES = int(os.environ.get("SHIPMENT_DEFAULT_ETA_MINUTES", "120"))

    RECEIPT_CODE_PREFIX = os.environ.get("RECEIPT_CODE_PREFIX", "DLV")

    # Browser origins allowed to call the API (comma-separated)
    CORS_ORIGINS = {
        o.strip()
        for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if o.strip()
    }
