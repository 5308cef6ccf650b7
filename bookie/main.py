"""
FastAPI application for the bookie ledger
REST API over one process-wide BookieSession, plus the daily auto-report job
"""

from fastapi import FastAPI, Depends, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterator, List, Optional
import logging
import os
import threading

from bookie.models import init_db
from bookie.auth import verify_api_key, verify_admin_api_key
from bookie.services.ledger import HistoryEntry
from bookie.services.session import (
    FORWARD_KINDS,
    MODES,
    AgentRequiredError,
    BookieSession,
    NotFoundError,
    ParseFormatError,
    get_bookie_session,
)
from bookie.schemas import (
    AgentIn,
    AgentOut,
    BatchLimitChange,
    BetTextIn,
    EditTextOut,
    ForwardConfirmIn,
    ForwardOut,
    GridCellOut,
    HistoryEntryOut,
    InboxBetsIn,
    LimitGroupCreate,
    LimitGroupOut,
    LimitGroupUpdate,
    LotteryTypeIn,
    ModeIn,
    ParsePreviewOut,
    PayoutRequest,
    ReportSaveIn,
    SettingsOut,
    SettingsUpdate,
    SummaryOut,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Scheduler instance
scheduler = BackgroundScheduler()

# Single logical actor: one request at a time touches the session
_session_lock = threading.Lock()


def get_session() -> Iterator[BookieSession]:
    with _session_lock:
        yield get_bookie_session()


def _auto_report_job():
    try:
        with _session_lock:
            report = get_bookie_session().save_report()
        logger.info("Auto report %s saved", report["id"])
    except Exception as exc:
        logger.error("Auto report job failed: %s", exc, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting bookie ledger")
    init_db()

    auto_report = os.getenv("AUTO_REPORT_ENABLED", "false").lower() == "true"
    report_hour = int(os.getenv("AUTO_REPORT_HOUR", "23"))
    timezone = os.getenv("AUTO_REPORT_TIMEZONE", "Asia/Yangon")
    if auto_report:
        scheduler.add_job(
            _auto_report_job,
            CronTrigger(hour=report_hour, minute=0, timezone=timezone),
            id="auto_report",
            name="Daily Report Snapshot",
            replace_existing=True,
        )
        logger.info("Auto report scheduled at %02d:00 %s", report_hour, timezone)

    scheduler.start()

    yield

    logger.info("Shutting down bookie ledger")
    scheduler.shutdown()


app = FastAPI(
    title="Bookie Ledger",
    description="2D/3D shorthand bet ledger with limits, forwarding and settlement",
    version="1.0",
    lifespan=lifespan,
)

# CORS (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:4200"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# ERROR MAPPING
# ============================================================================

@app.exception_handler(ParseFormatError)
async def parse_format_error_handler(request: Request, exc: ParseFormatError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "format error", "message": str(exc)},
    )


@app.exception_handler(AgentRequiredError)
async def agent_required_handler(request: Request, exc: AgentRequiredError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


def _entry_out(entry: HistoryEntry) -> dict:
    return entry.to_dict()


def _check_number(session: BookieSession, number: str) -> str:
    if not session.config.is_valid_number(number):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{number!r} is not a {session.lottery_type} number",
        )
    return number


# ============================================================================
# PUBLIC
# ============================================================================

@app.get("/")
async def root():
    return {"name": "Bookie Ledger", "status": "ok", "docs": "/docs"}


@app.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


# ============================================================================
# BETS AND HISTORY
# ============================================================================

@app.post("/api/parse", response_model=ParsePreviewOut)
def parse_preview(
    body: BetTextIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    """Parse without recording. An empty result is still a 200 here."""
    bets = session.parse_preview(body.text)
    return {
        "bets": [b.to_dict() for b in bets],
        "count": len(bets),
        "total_amount": sum(b.amount for b in bets),
    }


@app.post("/api/bets", response_model=HistoryEntryOut, status_code=status.HTTP_201_CREATED)
def add_bets(
    body: BetTextIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return _entry_out(session.add_bets(body.text))


@app.post("/api/bets/inbox", response_model=HistoryEntryOut, status_code=status.HTTP_201_CREATED)
def add_inbox_bets(
    body: InboxBetsIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return _entry_out(session.add_inbox_bets(body.text, body.agent_name))


@app.get("/api/history", response_model=List[HistoryEntryOut])
def list_history(
    limit: int = Query(50, ge=1, le=1000),
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    """Newest first."""
    return [_entry_out(e) for e in session.ledger.recent(limit)]


@app.delete("/api/history/{entry_id}")
def delete_history_entry(
    entry_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    session.delete_entry(entry_id)
    return {"deleted": entry_id}


@app.post("/api/history/{entry_id}/edit", response_model=EditTextOut)
def edit_history_entry(
    entry_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return {"text": session.edit_entry(entry_id)}


@app.post("/api/history/undo")
def undo_last(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    entry = session.undo_last()
    return {"undone": entry.id if entry else None}


@app.delete("/api/history")
def clear_history(
    user: str = Depends(verify_admin_api_key),
    session: BookieSession = Depends(get_session),
):
    session.clear_all()
    return {"cleared": True}


@app.delete("/api/bets/{bet_id}")
def delete_bet(
    bet_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    bet = session.delete_bet(bet_id)
    return {"deleted": bet.id, "number": bet.number, "amount": bet.amount}


@app.post("/api/bets/{bet_id}/edit", response_model=EditTextOut)
def edit_bet(
    bet_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return {"text": session.edit_bet(bet_id)}


@app.get("/api/submissions")
def pending_submissions(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return {"text": session.pending_submissions_text(), "count": len(session.ledger)}


# ============================================================================
# GRID, TOTALS, RISK
# ============================================================================

@app.get("/api/grid", response_model=List[GridCellOut])
def grid(
    over_only: bool = Query(False, description="Only cells above their limit"),
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    cells = session.limits.over_limit_cells() if over_only else session.grid_cells()
    return [c.to_dict() for c in cells]


@app.get("/api/numbers/{number}")
def number_detail(
    number: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    _check_number(session, number)
    return {
        "number": number,
        "total": session.aggregation.total(number),
        "limit": session.limits.limit(number),
        "over_limit_amount": session.limits.over_limit_amount(number),
        "acknowledged": session.limits.acknowledged.get(number, 0.0),
        "held": session.limits.held.get(number, 0.0),
        "sticky_held": number in session.limits.sticky_held,
        "bets": [b.to_dict() for b in session.breakdown(number)],
    }


@app.get("/api/summary", response_model=SummaryOut)
def summary(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.summary()


@app.get("/api/risk")
def risk(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return {
        "worst_case": session.worst_case_scenario(),
        "risk_analysis": session.risk_analysis(),
    }


@app.get("/api/voucher")
def voucher(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.voucher()


# ============================================================================
# OVER-LIMIT: HOLD / RELEASE / FORWARD
# ============================================================================

@app.get("/api/over-limit")
def over_limit(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    limits = session.limits
    return {
        "forwardable": [i.to_dict() for i in limits.forwardable_items()],
        "held": [i.to_dict() for i in limits.held_items()],
        "displayed": [i.to_dict() for i in limits.displayed_over_limit_items()],
        "sticky_held": sorted(limits.sticky_held),
    }


@app.post("/api/over-limit/{number}/hold")
def hold_number(
    number: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    _check_number(session, number)
    return {"number": number, "moved": session.hold(number)}


@app.post("/api/over-limit/{number}/release")
def release_number(
    number: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    _check_number(session, number)
    session.release(number)
    return {"number": number, "released": True}


def _check_kind(kind: str) -> str:
    if kind not in FORWARD_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown forward list {kind!r}")
    return kind


@app.get("/api/forward/{kind}", response_model=ForwardOut)
def forward_preview(
    kind: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    """Text to copy; nothing is acknowledged until /confirm."""
    _check_kind(kind)
    return {
        "kind": kind,
        "text": session.render_forward_text(kind),
        "items": [i.to_dict() for i in session.forward_items(kind)],
    }


@app.post("/api/forward/{kind}/confirm", response_model=ForwardOut)
def forward_confirm(
    kind: str,
    body: ForwardConfirmIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    """The client has delivered the list; commit only the numbers it carried.

    Numbers that joined the list after the preview stay pending.
    """
    _check_kind(kind)
    items = session.confirm_forward(kind, body.numbers)
    return {"kind": kind, "text": None, "items": [i.to_dict() for i in items]}


# ============================================================================
# LIMITS AND SETTINGS
# ============================================================================

@app.get("/api/limits", response_model=List[LimitGroupOut])
def list_limit_groups(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return [g.to_dict() for g in session.limits.groups]


@app.post("/api/limits", response_model=LimitGroupOut, status_code=status.HTTP_201_CREATED)
def add_limit_group(
    body: LimitGroupCreate,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    group = session.add_limit_group(body.name, body.amount)
    if group is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{body.name!r} does not expand to any {session.lottery_type} numbers",
        )
    return group.to_dict()


@app.put("/api/limits/{group_id}", response_model=LimitGroupOut)
def update_limit_group(
    group_id: str,
    body: LimitGroupUpdate,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.update_limit_group(group_id, body.amount).to_dict()


@app.post("/api/limits/{group_id}/toggle", response_model=LimitGroupOut)
def toggle_limit_group(
    group_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.toggle_limit_group(group_id).to_dict()


@app.delete("/api/limits/{group_id}")
def remove_limit_group(
    group_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    session.remove_limit_group(group_id)
    return {"deleted": group_id}


@app.delete("/api/limits")
def clear_limit_groups(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    session.clear_limit_groups()
    return {"cleared": True}


@app.post("/api/limits/batch", response_model=List[LimitGroupOut])
def batch_limit_change(
    body: BatchLimitChange,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    session.apply_batch_limit_change(body.kind, body.value)
    return [g.to_dict() for g in session.limits.groups]


@app.get("/api/settings", response_model=SettingsOut)
def get_settings(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.settings.to_dict()


@app.put("/api/settings", response_model=SettingsOut)
def update_settings(
    body: SettingsUpdate,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.update_settings(**body.model_dump(exclude_none=True)).to_dict()


@app.put("/api/lottery-type")
def set_lottery_type(
    body: LotteryTypeIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    session.set_lottery_type(body.lottery_type)
    return {"lottery_type": session.lottery_type, "mode": session.active_mode}


@app.put("/api/mode")
def set_mode(
    body: ModeIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    if body.mode not in MODES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown mode; expected one of {list(MODES)}",
        )
    session.set_active_mode(body.mode)
    return {"lottery_type": session.lottery_type, "mode": session.active_mode}


# ============================================================================
# SETTLEMENT
# ============================================================================

@app.post("/api/payout")
def payout(
    body: PayoutRequest,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    _check_number(session, body.winning_number)
    return session.calculate_payout(body.winning_number)


# ============================================================================
# AGENTS AND UPPER BOOKIES
# ============================================================================

@app.get("/api/agents", response_model=List[AgentOut])
def list_agents(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return [a.to_dict() for a in session.agents]


@app.get("/api/agents/performance")
def agents_performance(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.agents_with_performance()


@app.post("/api/agents", response_model=AgentOut, status_code=status.HTTP_201_CREATED)
def add_agent(
    body: AgentIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.add_agent(body.name, body.commission).to_dict()


@app.delete("/api/agents/{name}")
def remove_agent(
    name: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    session.remove_agent(name)
    return {"deleted": name}


@app.get("/api/upper-bookies", response_model=List[AgentOut])
def list_upper_bookies(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return [u.to_dict() for u in session.upper_bookies]


@app.post("/api/upper-bookies", response_model=AgentOut, status_code=status.HTTP_201_CREATED)
def add_upper_bookie(
    body: AgentIn,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.add_upper_bookie(body.name, body.commission).to_dict()


@app.delete("/api/upper-bookies/{name}")
def remove_upper_bookie(
    name: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    session.remove_upper_bookie(name)
    return {"deleted": name}


# ============================================================================
# REPORTS, SNAPSHOT, BACKUP
# ============================================================================

@app.post("/api/reports", status_code=status.HTTP_201_CREATED)
def save_report(
    body: Optional[ReportSaveIn] = None,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    report = session.save_report(body.session if body else None)
    return {"id": report["id"], "total_bet_amount": report["total_bet_amount"]}


@app.get("/api/reports")
def list_reports(
    lottery_type: Optional[str] = Query(None),
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return session.store.list_reports(lottery_type) if session.store else []


@app.post("/api/reports/{report_id}/restore")
def restore_report(
    report_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    restored = session.restore_saved_report(report_id)
    return {"restored_entries": restored, "lottery_type": session.lottery_type}


@app.delete("/api/reports/{report_id}")
def delete_report(
    report_id: str,
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    if session.store is None or not session.store.delete_report(report_id):
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return {"deleted": report_id}


@app.get("/api/snapshot")
def export_snapshot(
    user: str = Depends(verify_api_key),
    session: BookieSession = Depends(get_session),
):
    return {"key": session.key, "snapshot": session.snapshot()}


@app.get("/api/backup")
def backup(
    user: str = Depends(verify_admin_api_key),
    session: BookieSession = Depends(get_session),
):
    session.save()
    return session.store.backup_all() if session.store else {}


@app.post("/api/backup/restore")
def restore_backup(
    backup: dict,
    user: str = Depends(verify_admin_api_key),
    session: BookieSession = Depends(get_session),
):
    if session.store is None:
        raise HTTPException(status_code=409, detail="No storage configured")
    written = session.store.restore_all(backup)
    session.load()
    return {"restored_records": written}


# ============================================================================
# GLOBAL ERROR HANDLER
# ============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
