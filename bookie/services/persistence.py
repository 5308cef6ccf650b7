"""
SnapshotStore — the load/save boundary for session state.

Everything the engine persists is a JSON document in the ``app_data`` table
under a well-known key:

    app_state_<type>_<mode>   one session snapshot per (lottery type, mode)
    lottery_agents            agents and their commission rates
    lottery_upper_bookies     upper bookies
    last_active_mode          mode restored on start-up

Saved reports live in their own ``reports`` table so they can be listed
without loading every payload.

Storage failures are logged and re-raised; callers decide what to do with
the in-memory state.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from bookie.models import AppData, Report, SessionLocal

logger = logging.getLogger(__name__)

AGENTS_KEY = "lottery_agents"
UPPER_BOOKIES_KEY = "lottery_upper_bookies"
LAST_ACTIVE_MODE_KEY = "last_active_mode"


def state_key(lottery_type: str, mode: str) -> str:
    return f"app_state_{lottery_type}_{mode}"


class SnapshotStore:
    """Key/value snapshots and saved reports on top of a SQLAlchemy session factory."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Key/value
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        db = self._session_factory()
        try:
            row = db.get(AppData, key)
            return default if row is None or row.value is None else row.value
        except Exception as exc:
            logger.error("Failed to read %s: %s", key, exc, exc_info=True)
            raise
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        db = self._session_factory()
        try:
            row = db.get(AppData, key)
            if row is None:
                db.add(AppData(key=key, value=value))
            else:
                row.value = value
                row.updated_at = datetime.utcnow()
            db.commit()
        except Exception as exc:
            logger.error("Failed to write %s: %s", key, exc, exc_info=True)
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, key: str) -> bool:
        db = self._session_factory()
        try:
            row = db.get(AppData, key)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True
        except Exception as exc:
            logger.error("Failed to delete %s: %s", key, exc, exc_info=True)
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def save_report(self, report: Dict[str, Any]) -> str:
        """Insert or replace a report; returns its id."""
        db = self._session_factory()
        try:
            row = db.get(Report, report["id"])
            if row is None:
                row = Report(id=report["id"])
                db.add(row)
            row.lottery_type = report.get("lottery_type", "")
            row.mode = report.get("mode", "")
            row.session = report.get("session")
            row.total_bet_amount = float(report.get("total_bet_amount") or 0.0)
            row.net_amount = float(report.get("net_amount") or 0.0)
            row.bet_count = len(report.get("bet_history") or [])
            row.data = report
            db.commit()
            logger.info("Report %s saved", report["id"])
            return report["id"]
        except Exception as exc:
            logger.error("Failed to save report: %s", exc, exc_info=True)
            db.rollback()
            raise
        finally:
            db.close()

    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            row = db.get(Report, report_id)
            return None if row is None else row.data
        finally:
            db.close()

    def list_reports(self, lottery_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Report summaries, newest first."""
        db = self._session_factory()
        try:
            query = db.query(Report)
            if lottery_type:
                query = query.filter(Report.lottery_type == lottery_type)
            rows = query.order_by(Report.created_at.desc()).all()
            return [
                {
                    "id": r.id,
                    "lottery_type": r.lottery_type,
                    "mode": r.mode,
                    "session": r.session,
                    "date": (r.data or {}).get("date"),
                    "total_bet_amount": r.total_bet_amount,
                    "net_amount": r.net_amount,
                    "bet_count": r.bet_count,
                }
                for r in rows
            ]
        finally:
            db.close()

    def delete_report(self, report_id: str) -> bool:
        db = self._session_factory()
        try:
            row = db.get(Report, report_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            logger.info("Report %s deleted", report_id)
            return True
        except Exception as exc:
            logger.error("Failed to delete report %s: %s", report_id, exc, exc_info=True)
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def backup_all(self) -> Dict[str, Any]:
        """Every key/value document and every report, for a JSON download."""
        db = self._session_factory()
        try:
            return {
                "app_data": {row.key: row.value for row in db.query(AppData).all()},
                "reports": [row.data for row in db.query(Report).all()],
                "exported_at": datetime.utcnow().isoformat(),
            }
        finally:
            db.close()

    def restore_all(self, backup: Dict[str, Any]) -> int:
        """Write back a :meth:`backup_all` document. Returns records written."""
        written = 0
        for key, value in (backup.get("app_data") or {}).items():
            self.set(key, value)
            written += 1
        for report in backup.get("reports") or []:
            if isinstance(report, dict) and report.get("id"):
                self.save_report(report)
                written += 1
        logger.info("Restored %d records from backup", written)
        return written
