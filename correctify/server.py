"""
HTTP correction endpoint for browser and non-native deployments.

Keys travel per request in an ``X-{PROVIDER}-KEY`` header and are never
stored.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, jsonify, request

from .exceptions import ValidationError
from .logger import get_logger
from .models import MODELS, default_model_for, parse_provider
from .orchestrator import CorrectionOrchestrator
from .prompts import WritingStyle
from .secure_keys import MemoryKeyStore
from .usage_ledger import UsageLedger

logger = get_logger(__name__)


def error_response(message: str, status: int, duration_ms: Optional[int] = None) -> Tuple[Response, int]:
    body: Dict[str, Any] = {"ok": False, "error": message}
    if duration_ms is not None:
        body["meta"] = {"duration": duration_ms}
    return jsonify(body), status


def key_header(provider_value: str) -> str:
    return f"X-{provider_value.upper()}-KEY"


def create_app(orchestrator: Optional[CorrectionOrchestrator] = None) -> Flask:
    """Build the Flask application.

    Args:
        orchestrator: Orchestrator to serve requests with; by default one
            with an empty in-memory key store and the local usage ledger.
    """
    if orchestrator is None:
        orchestrator = CorrectionOrchestrator(MemoryKeyStore(), UsageLedger())

    app = Flask(__name__)
    app.config["ORCHESTRATOR"] = orchestrator

    @app.route("/health", methods=["GET"])
    def health() -> Tuple[Response, int]:
        return jsonify({"status": "ok"}), 200

    @app.route("/models", methods=["GET"])
    def models() -> Tuple[Response, int]:
        return jsonify({"models": [model.to_dict() for model in MODELS]}), 200

    @app.route("/correct", methods=["POST"])
    def correct() -> Tuple[Response, int]:
        started = time.monotonic()
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return error_response("Request body must be a JSON object", 400)

        text = body.get("text")
        if not isinstance(text, str) or not text.strip():
            return error_response("Text is required", 400)

        try:
            provider = parse_provider(body.get("provider"))
        except ValidationError as e:
            return error_response(str(e), 400)

        header = key_header(provider.value)
        api_key = request.headers.get(header)
        if not api_key or not api_key.strip():
            return error_response(f"{provider.label} API key is required in {header} header", 400)

        model = body.get("model") or default_model_for(provider).id
        if not isinstance(model, str):
            return error_response("model must be a string", 400)
        temperature = body.get("temperature", 0)
        style = body.get("writingStyle") or WritingStyle.GRAMMAR.value
        custom_rules = body.get("customRules")
        if custom_rules is not None and not isinstance(custom_rules, str):
            return error_response("customRules must be a string", 400)

        try:
            result = asyncio.run(orchestrator.submit(
                text,
                style,
                custom_rules,
                model,
                temperature=temperature,
                api_key=api_key,
                provider=provider,
            ))
        except ValidationError as e:
            return error_response(str(e), 400)
        except Exception as e:  # pylint: disable=broad-exception-caught
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.error(f"Correction request failed: {e}")
            return error_response(str(e) or "Unknown error occurred", 500, duration_ms)

        duration_ms = int((time.monotonic() - started) * 1000)
        return jsonify({
            "ok": True,
            "result": result.text,
            "meta": {
                "duration": duration_ms,
                "model": model,
                "provider": provider.value,
            },
        }), 200

    return app
