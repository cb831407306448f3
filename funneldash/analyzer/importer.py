"""FunnelDash — Import Orchestrator.

Runs the two ingestion flows end to end and reports a structured
``ImportOutcome`` instead of raising:

  CSV:      parse → duplicate-date guard → batched insert
  RedTrack: fetch → normalize → (replace range | duplicate-date guard) → batched insert

Messages are user-facing and written in Portuguese.
"""

from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from funneldash.analyzer.date_guard import guard_import
from funneldash.connectors.redtrack.client import RedTrackAPIError, RedTrackClient
from funneldash.connectors.redtrack.endpoints import RedTrackEndpoints
from funneldash.connectors.redtrack.transformer import normalize_rows
from funneldash.core.funnel_registry import DEFAULT_RULES, ExtractionRules
from funneldash.models.dashboard_models import ImportOutcome, ImportReason
from funneldash.models.funnel_models import FunnelRecord
from funneldash.parsers.csv_parser import (
    EmptyCSVError,
    MissingColumnsError,
    NoValidRecordsError,
    parse_funnel_csv,
)
from funneldash.storage.funnel_store import (
    BatchInsertError,
    delete_by_date_range,
    insert_records,
)
from funneldash.core.logging import get_logger

logger = get_logger("analyzer.importer")


def _format_dates(dates: Sequence[date]) -> str:
    return ", ".join(d.isoformat() for d in dates)


def _duplicate_outcome(conflicts: List[date], skipped: int = 0) -> ImportOutcome:
    return ImportOutcome(
        success=False,
        reason=ImportReason.DUPLICATE_DATES,
        message=f"Datas já existentes: {_format_dates(conflicts)}",
        duplicate_dates=conflicts,
        skipped_rows=skipped,
    )


def _storage_outcome(error: Exception) -> ImportOutcome:
    return ImportOutcome(
        success=False,
        reason=ImportReason.STORAGE_ERROR,
        message=f"Erro ao salvar registros: {error}",
    )


def _store(
    session: Session, records: List[FunnelRecord], skipped: int = 0
) -> ImportOutcome:
    """Insert and describe the result."""
    dates = sorted({r.date for r in records})
    result = insert_records(session, records)
    message = f"{result.inserted} registros importados com sucesso"
    if skipped:
        message += f" ({skipped} linhas ignoradas)"
    if result.failed:
        message += f"; {result.failed} registros falharam"
    stored = result.inserted > 0 or not records
    return ImportOutcome(
        success=stored,
        reason=None if stored else ImportReason.STORAGE_ERROR,
        message=message,
        records_imported=result.inserted,
        dates_imported=dates,
        skipped_rows=skipped,
        failed_records=result.failed,
    )


# ─────────────────────────────────────────────
# CSV UPLOAD
# ─────────────────────────────────────────────


def import_csv(
    session: Session,
    csv_content: Optional[str],
    replace_existing: bool = False,
    rules: ExtractionRules = DEFAULT_RULES,
) -> ImportOutcome:
    """Parse and store an uploaded CSV, guarding against duplicate dates."""
    try:
        parsed = parse_funnel_csv(csv_content, rules=rules)
    except EmptyCSVError:
        return ImportOutcome(
            success=False,
            reason=ImportReason.EMPTY_CSV,
            message="CSV vazio ou formato inválido",
        )
    except MissingColumnsError as e:
        return ImportOutcome(
            success=False,
            reason=ImportReason.MISSING_COLUMNS,
            message=f"Colunas obrigatórias ausentes: {', '.join(e.missing)}",
        )
    except NoValidRecordsError as e:
        return ImportOutcome(
            success=False,
            reason=ImportReason.NO_VALID_RECORDS,
            message="Nenhum registro válido encontrado no CSV",
            skipped_rows=e.skipped_rows,
        )
    except Exception as e:
        logger.error(f"CSV parsing failed: {e}")
        return ImportOutcome(
            success=False,
            reason=ImportReason.PARSE_ERROR,
            message=f"Erro ao processar CSV: {e}",
        )

    dates = {r.date for r in parsed.records}
    try:
        decision = guard_import(session, dates, replace=replace_existing)
        if not decision.proceed:
            return _duplicate_outcome(decision.conflicts, parsed.skipped_rows)
        outcome = _store(session, parsed.records, parsed.skipped_rows)
    except (SQLAlchemyError, BatchInsertError) as e:
        session.rollback()
        logger.error(f"CSV import failed: {e}")
        return _storage_outcome(e)

    logger.info(
        f"CSV import finished: {outcome.records_imported} records",
        extra={"records": outcome.records_imported},
    )
    return outcome


# ─────────────────────────────────────────────
# REDTRACK IMPORT
# ─────────────────────────────────────────────


async def import_from_redtrack(
    session: Session,
    start_date: date,
    end_date: date,
    replace_existing: bool = False,
    client: Optional[RedTrackClient] = None,
    endpoints: Optional[RedTrackEndpoints] = None,
    rules: ExtractionRules = DEFAULT_RULES,
) -> ImportOutcome:
    """Fetch a date range from RedTrack and store the accepted campaigns.

    With ``replace_existing`` every stored record in the range is deleted
    before inserting; otherwise dates that already hold data reject the
    whole import.
    """
    if start_date > end_date:
        return ImportOutcome(
            success=False,
            reason=ImportReason.INVALID_RANGE,
            message="Data inicial deve ser anterior ou igual à data final",
        )

    owns_client = client is None and endpoints is None
    client = client or RedTrackClient()
    endpoints = endpoints or RedTrackEndpoints(client)

    try:
        raw_rows = await endpoints.fetch_campaign_report(start_date, end_date)
    except RedTrackAPIError as e:
        logger.error(f"RedTrack fetch failed: {e}", extra={"status_code": e.status_code})
        return ImportOutcome(
            success=False,
            reason=ImportReason.UPSTREAM_ERROR,
            message=f"Erro na API RedTrack: {e}",
        )
    finally:
        if owns_client:
            await client.close()

    records = normalize_rows(raw_rows, rules=rules)

    try:
        if replace_existing:
            delete_by_date_range(session, start_date, end_date)
        else:
            decision = guard_import(session, {r.date for r in records}, replace=False)
            if not decision.proceed:
                return _duplicate_outcome(decision.conflicts)
        outcome = _store(session, records)
    except (SQLAlchemyError, BatchInsertError) as e:
        session.rollback()
        logger.error(f"RedTrack import failed: {e}")
        return _storage_outcome(e)

    logger.info(
        f"RedTrack import finished: {outcome.records_imported} records "
        f"from {start_date} to {end_date}",
        extra={"records": outcome.records_imported},
    )
    return outcome
