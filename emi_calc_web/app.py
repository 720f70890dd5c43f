"""JSON API for interactive schedule recomputation.

The browser front end sends the complete loan and override set on every
edit; each request builds its own ``LoanSession`` so requests share no state.
Saved scenarios live in a ``ScenarioStore`` configured from the environment.
"""

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from emi_calc.data_models import ScheduleRow
from emi_calc.scenario import generate_scenario_id, scenario_from_dict, scenario_to_dict
from emi_calc.session import LoanSession
from emi_calc_web.scenario_store import create_store_from_env

logger = logging.getLogger(__name__)


def _session_from_payload(payload: Any) -> LoanSession:
    """Build a recomputed session from a scenario-shaped request body."""
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    data = dict(payload)
    data["id"] = data.get("id") or generate_scenario_id()
    return LoanSession.from_scenario(scenario_from_dict(data))


def _serialize_row(row: ScheduleRow) -> Dict[str, Any]:
    return {
        "month_index": row.month_index,
        "emi": float(row.emi),
        "interest": float(row.interest),
        "principal": float(row.principal),
        "disbursement": float(row.disbursement),
        "prepayment": float(row.prepayment),
        "rate_change": None if row.rate_change is None else float(row.rate_change),
        "balance": float(row.balance),
    }


def _session_response(session: LoanSession) -> Dict[str, Any]:
    return {
        "summary": session.metrics().as_dict(),
        "baseline_emi": float(session.baseline.initial_emi),
        "schedule": [_serialize_row(row) for row in session.current.rows],
        "termination": session.current.termination,
        "diagnostics": session.current.diagnostics,
    }


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def create_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    app.config["SCENARIO_DATABASE_URL"] = os.environ.get("SCENARIO_DATABASE_URL")
    app.config["MAX_SCENARIOS"] = int(os.environ.get("MAX_SCENARIOS", "50"))
    if config:
        app.config.update(config)
    store = create_store_from_env(
        app.config["SCENARIO_DATABASE_URL"], max_scenarios=app.config["MAX_SCENARIOS"]
    )

    @app.post("/api/schedule")
    def compute_schedule():
        try:
            session = _session_from_payload(request.get_json(silent=True))
        except ValueError as exc:
            logger.info("Rejected schedule request: %s", exc)
            return _error(str(exc), 400)
        return jsonify(_session_response(session))

    @app.get("/api/scenarios")
    def list_scenarios():
        return jsonify(store.list_scenarios())

    @app.post("/api/scenarios")
    def save_scenario():
        payload = request.get_json(silent=True)
        try:
            session = _session_from_payload(payload)
        except ValueError as exc:
            return _error(str(exc), 400)
        name = payload.get("name")
        if name is not None and not isinstance(name, str):
            return _error("name must be a string", 400)
        scenario = session.to_scenario()
        store.save_scenario(scenario, name=(name or "").strip() or None)
        return jsonify({"id": scenario.id}), 201

    @app.get("/api/scenarios/<scenario_id>")
    def load_scenario(scenario_id: str):
        scenario = store.get_scenario(scenario_id)
        if scenario is None:
            return _error(f"Unknown scenario: {scenario_id}", 404)
        body = _session_response(LoanSession.from_scenario(scenario))
        body["scenario"] = scenario_to_dict(scenario)
        return jsonify(body)

    @app.delete("/api/scenarios/<scenario_id>")
    def delete_scenario(scenario_id: str):
        if not store.delete_scenario(scenario_id):
            return _error(f"Unknown scenario: {scenario_id}", 404)
        return "", 204

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Starting EMI planner API...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
