# Folder: qport-core/app/main.py
#
# The dashboard-facing API over the pipeline orchestrator.
#
#   POST  /incidents                  submit a raw report
#   GET   /incidents                  ledger, most recent first
#   GET   /incidents/<id>
#   PATCH /incidents/<id>/status
#   POST  /incidents/<id>/analysis    generate + attach tactical analysis
#   GET   /stats   GET /health
#   GET   /diagnostics   POST /diagnostics
#   GET   /preferences   PUT /preferences

import logging
from flask import Flask, abort, jsonify, request
from pydantic import ValidationError
from app.middleware import register_middleware
from agent.errors import ReportValidationError
from ingestion.event_schema import IncidentStatus, UIPreferences

logger = logging.getLogger(__name__)


def _dump(model):
    return model.model_dump(mode="json")


def _json_object() -> dict:
    """Request body as a JSON object. Missing or unparseable → {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description="request body must be a JSON object")
    return data


def create_app(orchestrator) -> Flask:
    app = Flask(__name__)
    app.config["ORCHESTRATOR"] = orchestrator
    register_middleware(app)

    @app.route("/incidents", methods=["POST"])
    def submit_incident():
        data = _json_object()
        try:
            incident = orchestrator.submit(data.get("text", ""))
        except ReportValidationError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify(_dump(incident)), 201

    @app.route("/incidents", methods=["GET"])
    def list_incidents():
        return jsonify({"incidents": [_dump(i) for i in orchestrator.incidents()]})

    @app.route("/incidents/<incident_id>", methods=["GET"])
    def get_incident(incident_id):
        incident = orchestrator.get_incident(incident_id)
        if incident is None:
            return jsonify({"error": f"unknown incident {incident_id}"}), 404
        return jsonify(_dump(incident))

    @app.route("/incidents/<incident_id>/status", methods=["PATCH"])
    def update_status(incident_id):
        data = _json_object()
        try:
            status = IncidentStatus(data.get("status"))
        except ValueError:
            allowed = ", ".join(s.value for s in IncidentStatus)
            return jsonify({"error": f"status must be one of {allowed}"}), 400
        incident = orchestrator.update_status(incident_id, status)
        if incident is None:
            return jsonify({"error": f"unknown incident {incident_id}"}), 404
        return jsonify(_dump(incident))

    @app.route("/incidents/<incident_id>/analysis", methods=["POST"])
    def tactical_analysis(incident_id):
        incident = orchestrator.request_tactical_analysis(incident_id)
        if incident is None:
            return jsonify({"error": f"unknown incident {incident_id}"}), 404
        return jsonify(_dump(incident))

    @app.route("/stats")
    def stats():
        return jsonify(_dump(orchestrator.stats()))

    @app.route("/health")
    def health():
        return jsonify({
            **_dump(orchestrator.health()),
            "metrics": orchestrator.metrics(),
        })

    @app.route("/diagnostics", methods=["GET"])
    def last_diagnostics():
        return jsonify({"diagnostics": [_dump(d) for d in orchestrator.last_diagnostics()]})

    @app.route("/diagnostics", methods=["POST"])
    def run_diagnostics():
        records = orchestrator.run_diagnostics()
        return jsonify({"diagnostics": [_dump(d) for d in records]})

    @app.route("/preferences", methods=["GET"])
    def get_preferences():
        return jsonify(_dump(orchestrator.get_preferences()))

    @app.route("/preferences", methods=["PUT"])
    def put_preferences():
        try:
            prefs = UIPreferences.model_validate(_json_object())
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify(_dump(orchestrator.update_preferences(prefs)))

    return app
