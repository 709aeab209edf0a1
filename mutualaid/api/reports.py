from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import require_function
from ..constants import EXPORT_START_YEAR, FN_EXPORT, FN_LIST_MEMBERS, FN_VIEW_ALL_PAYMENTS, MemberStatus
from ..models.models import User
from ..schemas.schemas import (
    MemberListItem,
    PaymentHistoryRead,
    PaymentHistoryRowRead,
    ReportSummary,
    YearPaymentRead,
)
from ..services import members as member_service
from ..services.delinquency import PaymentStatus
from ..services.reports import build_payment_history, filter_members, generate_member_export, summarize_members

router = APIRouter()


def _csv_response(filename: str, content: str) -> Response:
    headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "Cache-Control": "no-store",
    }
    return Response(content=content, media_type="text/csv", headers=headers)


@router.get("/summary", response_model=ReportSummary)
def report_summary(
    db: Session = Depends(get_db),
    _: User = Depends(require_function(FN_LIST_MEMBERS)),
) -> ReportSummary:
    records = [member_service.to_record(member) for member in member_service.list_members(db)]
    return ReportSummary.model_validate(summarize_members(records))


@router.get("/members", response_model=List[MemberListItem])
def report_members(
    search: Optional[str] = Query(None, description="Matches name or member number"),
    status: Optional[MemberStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None, description="Payment state for the current year"),
    db: Session = Depends(get_db),
    _: User = Depends(require_function(FN_LIST_MEMBERS)),
) -> List[MemberListItem]:
    members = {member.id: member for member in member_service.list_members(db)}
    records = [member_service.to_record(member) for member in members.values()]
    matches = filter_members(records, search=search, status=status, payment_status=payment_status)
    return [MemberListItem.model_validate(members[record.id]) for record in matches]


@router.get("/payments", response_model=PaymentHistoryRead)
def report_payment_history(
    start_year: int = Query(EXPORT_START_YEAR),
    end_year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    _: User = Depends(require_function(FN_VIEW_ALL_PAYMENTS)),
) -> PaymentHistoryRead:
    end_year = end_year or date.today().year
    records = [member_service.to_record(member) for member in member_service.list_members(db)]
    try:
        history = build_payment_history(records, start_year, end_year)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return PaymentHistoryRead(
        start_year=history.start_year,
        end_year=history.end_year,
        grand_total=history.grand_total,
        rows=[
            PaymentHistoryRowRead(
                member_number=row.member.member_number,
                name=row.member.name,
                status=row.member.status,
                total_paid=row.total_paid,
                years_paid=row.years_paid,
                payments=[YearPaymentRead.model_validate(payment) for payment in row.payments],
            )
            for row in history.rows
        ],
    )


@router.get("/export")
def export_members(
    db: Session = Depends(get_db),
    _: User = Depends(require_function(FN_EXPORT)),
) -> Response:
    records = [member_service.to_record(member) for member in member_service.list_members(db)]
    report = generate_member_export(records)
    return _csv_response(report.filename, report.content)
