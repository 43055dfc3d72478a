"""
TableTalk - Web API
Question-to-SQL generation behind the security and grammar gates.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
import logging

from flask import Flask, current_app, jsonify, request
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
import numpy as np

from tabletalk.config import TableTalkConfig
from tabletalk.core.context_builder import VectorStoreEntry
from tabletalk.core.dataset import Schema
from tabletalk.core.errors import (
    DatasetError,
    ExecutionError,
    ExternalServiceError,
    GrammarViolation,
    SecurityViolation,
)
from tabletalk.core.grammar import GrammarValidator
from tabletalk.core.interpreter import SQLInterpreter
from tabletalk.core.loader import dataset_from_records
from tabletalk.core.security import SecurityLog
from tabletalk.inference.generator import CompletionEngine, GenerationRequest, SQLGenerator
from tabletalk.inference.llm_engine import LLMEngine

logger = logging.getLogger(__name__)


# Custom JSON encoder for numpy and date values
class CustomJSONProvider(DefaultJSONProvider):
    def default(self, obj):
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


# ============================================================================
# Request parsing helpers
# ============================================================================

def _schema_from_payload(payload: Dict[str, Any], sample_rows: List[Dict[str, Any]]) -> Schema:
    raw = payload.get("schema")
    if raw:
        return Schema.from_list(raw)
    if sample_rows:
        return dataset_from_records(sample_rows).schema
    return Schema([])


def _vector_store_from_payload(payload: Dict[str, Any]) -> Optional[List[VectorStoreEntry]]:
    raw = payload.get("vectorStore")
    if raw is None:
        return None
    return [VectorStoreEntry.from_dict(item) for item in raw]


def _generator() -> SQLGenerator:
    return current_app.extensions["tabletalk"]["generator"]


def _security_log() -> SecurityLog:
    return current_app.extensions["tabletalk"]["security_log"]


# ============================================================================
# Application factory
# ============================================================================

def create_app(config: TableTalkConfig = None, llm: CompletionEngine = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Application configuration
        llm: Completion engine; an LLMEngine built from config by default
    """
    config = config or TableTalkConfig()
    security_log = SecurityLog()

    app = Flask(__name__)
    app.json_provider_class = CustomJSONProvider
    app.json = CustomJSONProvider(app)
    app.config["MAX_CONTENT_LENGTH"] = config.server.max_content_length
    CORS(app, origins=config.server.cors_origin)

    app.extensions["tabletalk"] = {
        "config": config,
        "security_log": security_log,
        "generator": SQLGenerator(
            llm=llm or LLMEngine(config.llm),
            config=config,
            security_log=security_log,
        ),
    }

    @app.route("/health", methods=["GET"])
    @app.route("/api/health", methods=["GET"])
    def health():
        """Liveness check."""
        return jsonify({"status": "ok", "message": "Text-to-SQL API is running"})

    @app.route("/generate-sql", methods=["POST"])
    @app.route("/api/generate-sql", methods=["POST"])
    def generate_sql():
        """Generate validated SQL for a question."""
        payload = request.get_json(silent=True) or {}
        question = payload.get("question")
        if not question:
            return jsonify({"error": "Question is required"}), 400

        try:
            sample_rows = list(payload.get("sampleData") or [])
            gen_request = GenerationRequest(
                question=question,
                schema=_schema_from_payload(payload, sample_rows),
                sample_rows=sample_rows,
                table_name=payload.get("tableName"),
                vector_store=_vector_store_from_payload(payload),
            )
            result = _generator().generate(gen_request)
        except SecurityViolation as e:
            return jsonify({"error": "Security violation detected", "threats": e.labels}), 400
        except GrammarViolation as e:
            return jsonify({"error": "SQL grammar error", "details": e.details}), 400
        except DatasetError as e:
            return jsonify({"error": "Invalid request", "details": str(e)}), 400
        except ExternalServiceError as e:
            logger.error(f"Error generating SQL: {e}")
            return jsonify({"error": "Failed to generate SQL", "details": str(e)}), 502
        except Exception as e:
            logger.exception("Error generating SQL")
            return jsonify({"error": "Failed to generate SQL", "details": str(e)}), 500

        return jsonify(result.to_dict())

    @app.route("/api/execute", methods=["POST"])
    def execute_sql():
        """Validate and execute SQL against rows supplied in the request."""
        payload = request.get_json(silent=True) or {}
        sql = payload.get("sql")
        if not sql:
            return jsonify({"error": "SQL is required"}), 400

        errors = GrammarValidator().validate(sql)
        if errors:
            return jsonify({"error": "SQL grammar error", "details": [e.value for e in errors]}), 400

        try:
            records = list(payload.get("data") or [])
            schema = Schema.from_list(payload["schema"]) if payload.get("schema") else None
            if schema is None and not records:
                return jsonify({"error": "Invalid request", "details": "No data provided"}), 400
            dataset = dataset_from_records(records, name=payload.get("tableName"), schema=schema)
            results = SQLInterpreter().execute(dataset, sql)
        except DatasetError as e:
            return jsonify({"error": "Invalid request", "details": str(e)}), 400
        except ExecutionError as e:
            return jsonify({"error": "Execution error", "details": str(e), "code": e.code}), 400

        return jsonify({"results": results, "rowCount": len(results)})

    @app.route("/api/security-log", methods=["GET"])
    def security_log_entries():
        """Rejected questions seen by this server."""
        return jsonify({"entries": _security_log().to_list()})

    return app
