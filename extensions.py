"""
Shared singletons: the rate limiter and the per-app service objects
(identity provider, document store, scheduler, session registry, AI client).
"""

from __future__ import annotations

from flask import Flask, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per hour"])


class ServiceManager:
    """Services built once per app and stored in ``app.extensions``.

    Tests replace any of them by passing ready-made objects in the test
    config (``DOCUMENT_STORE``, ``SCHEDULER``, ``TEXT_CLIENT``, ``TODAY``).
    """

    KEY = "preppilot"

    @classmethod
    def init_app(cls, app: Flask) -> dict:
        from ai_client import GeminiTextClient
        from chat import ChatBridge, ChatTranscript
        from document_store import SQLiteDocumentStore
        from identity import IdentityProvider
        from scheduler import create_scheduler
        from session_gate import SessionRegistry

        documents = app.config.get("DOCUMENT_STORE") or SQLiteDocumentStore(app.config["DATABASE"])
        scheduler = app.config.get("SCHEDULER") or create_scheduler()
        client = app.config.get("TEXT_CLIENT") or GeminiTextClient(app.config.get("GOOGLE_API_KEY", ""))
        model_name = app.config.get("GEMINI_MODEL", "gemini-1.5-flash")
        db_path = app.config["DATABASE"]

        def chat_factory(user_id: int) -> ChatBridge:
            return ChatBridge(ChatTranscript(db_path, user_id), client, model_name)

        identity = IdentityProvider()
        registry_kwargs = {}
        if app.config.get("TODAY"):
            registry_kwargs["today"] = app.config["TODAY"]
        registry = SessionRegistry(
            identity,
            documents,
            scheduler,
            write_delay=app.config.get("PROFILE_WRITE_DELAY", 1.0),
            chat_factory=chat_factory,
            **registry_kwargs,
        )

        services = {
            "documents": documents,
            "scheduler": scheduler,
            "text_client": client,
            "identity": identity,
            "registry": registry,
        }
        app.extensions[cls.KEY] = services
        return services

    @classmethod
    def get(cls, name: str):
        return current_app.extensions[cls.KEY][name]

    @classmethod
    def identity(cls):
        return cls.get("identity")

    @classmethod
    def registry(cls):
        return cls.get("registry")
