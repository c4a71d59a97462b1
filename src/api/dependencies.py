"""
FastAPI dependencies wiring the homework components to a request session.

Each request gets fresh component instances bound to its own session;
no submission state is cached between requests.
"""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from src.db.database import get_db
from src.homework.catalog import HomeworkCatalog
from src.homework.engine import HomeworkSubmissionEngine
from src.homework.flows import FlowRegistry
from src.homework.ledger import AttributionLedger
from src.homework.tracking import TrackingCodeGenerator


def get_tracking_generator() -> TrackingCodeGenerator:
    return TrackingCodeGenerator()


def get_flow_registry(db: Session = Depends(get_db)) -> FlowRegistry:
    return FlowRegistry(db)


def get_catalog(db: Session = Depends(get_db)) -> HomeworkCatalog:
    return HomeworkCatalog(db)


def get_submission_engine(
    db: Session = Depends(get_db),
    catalog: HomeworkCatalog = Depends(get_catalog),
    flows: FlowRegistry = Depends(get_flow_registry),
    tracking: TrackingCodeGenerator = Depends(get_tracking_generator),
) -> HomeworkSubmissionEngine:
    return HomeworkSubmissionEngine(db, catalog=catalog, flows=flows, tracking=tracking)


def get_ledger(
    db: Session = Depends(get_db),
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
    flows: FlowRegistry = Depends(get_flow_registry),
) -> AttributionLedger:
    return AttributionLedger(db, engine=engine, flows=flows)
