"""Persistence layer for saved loan scenarios.

Scenarios are stored as their JSON representation in a single table so the
web app can save, list, reload and delete them. It defaults to SQLite for
local development, but accepts any SQLAlchemy-compatible URL (e.g.
PostgreSQL/MySQL).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from emi_calc.data_models import Scenario
from emi_calc.scenario import scenario_from_dict, scenario_to_dict

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///scenario_data.sqlite3"


class ScenarioModel(Base):
    __tablename__ = "loan_scenarios"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    scenario_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)


class ScenarioStore:
    """Database-backed scenario store.

    Saving a scenario whose id already exists replaces it. When more than
    ``max_scenarios`` are stored, the oldest are deleted.
    """

    def __init__(self, url: str, *, max_scenarios: int = 50) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._max_scenarios = max_scenarios

    def list_scenarios(self) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            rows: Iterable[ScenarioModel] = session.execute(
                select(ScenarioModel).order_by(ScenarioModel.created_at.asc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def get_scenario(self, scenario_id: str) -> Optional[Scenario]:
        with self._session_factory() as session:
            row = session.get(ScenarioModel, scenario_id)
            if row is None:
                return None
            return scenario_from_dict(json.loads(row.scenario_json))

    def save_scenario(self, scenario: Scenario, name: Optional[str] = None) -> None:
        payload = json.dumps(scenario_to_dict(scenario))
        with self._session_factory() as session:
            row = session.get(ScenarioModel, scenario.id)
            if row is None:
                session.add(ScenarioModel(id=scenario.id, name=name or scenario.id, scenario_json=payload))
            else:
                row.name = name or row.name
                row.scenario_json = payload
            session.commit()
        logger.info("Saved scenario %s", scenario.id)
        self._trim()

    def delete_scenario(self, scenario_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(ScenarioModel, scenario_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
        return True

    def _trim(self) -> None:
        if not self._max_scenarios or self._max_scenarios < 0:
            return
        with self._session_factory() as session:
            rows = session.execute(
                select(ScenarioModel).order_by(ScenarioModel.created_at.desc())
            ).scalars().all()
            if len(rows) <= self._max_scenarios:
                return
            for row in rows[self._max_scenarios :]:
                logger.info("Dropping scenario %s over the %d-scenario limit", row.id, self._max_scenarios)
                session.delete(row)
            session.commit()

    @staticmethod
    def _to_dict(row: ScenarioModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "created_at": row.created_at.isoformat(),
        }


def create_store_from_env(url: Optional[str], *, max_scenarios: int = 50) -> ScenarioStore:
    return ScenarioStore(url or DEFAULT_DATABASE_URL, max_scenarios=max_scenarios)
