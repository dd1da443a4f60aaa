"""GET /api/data - unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.audit import AuditAction, EntityType
from core.exceptions import NotFoundError


VALID_TYPES = {"jobs", "quotations", "invoices", "payments", "receipts", "audit"}


def _many(items) -> list[dict]:
    return [item.model_dump(mode="json") for item in items]


def _one(item, entity_type: str, key: str) -> dict:
    if item is None:
        raise NotFoundError(entity_type, key)
    return item.model_dump(mode="json")


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    job_svc = services["job"]
    quotation_svc = services["quotation"]
    invoice_svc = services["invoice"]
    payment_svc = services["payment"]
    receipt_svc = services["receipt"]
    audit = services["audit"]
    report_svc = services["report"]

    # -------------------------------------------------------------------------
    # Convenience routes (must be registered before the generic /data route)
    # -------------------------------------------------------------------------

    @router.get("/data/jobs/today")
    async def jobs_today(request: Request):
        return success_response(
            _many(job_svc.list_today()), getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    @router.get("/reports/dashboard")
    async def dashboard(request: Request):
        stats = report_svc.dashboard_stats()
        return success_response(
            stats.model_dump(mode="json"), getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    @router.get("/reports/daily")
    async def daily(request: Request, days: int = Query(7, ge=1, le=90)):
        summaries = report_svc.daily_summaries(days)
        return success_response(
            _many(summaries), getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Generic data endpoint
    # -------------------------------------------------------------------------

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        number: str | None = Query(None),
        status: str | None = Query(None),
        job_id: str | None = Query(None),
        quotation_id: str | None = Query(None),
        invoice_id: str | None = Query(None),
        entity_type: str | None = Query(None),
        action: str | None = Query(None),
        include: str | None = Query(None),
        filter: str | None = Query(None),
        limit: int = Query(100, ge=1, le=1000),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        request_id = getattr(request.state, "request_id", None)

        if type == "jobs":
            data = _handle_jobs(job_svc, id, number, status, filter, limit)
        elif type == "quotations":
            data = _handle_quotations(quotation_svc, id, number, status, job_id, limit)
        elif type == "invoices":
            data = _handle_invoices(invoice_svc, id, number, status, quotation_id, filter, limit)
        elif type == "payments":
            data = _handle_payments(payment_svc, id, invoice_id, limit)
        elif type == "receipts":
            includes = set(include.split(",")) if include else set()
            data = _handle_receipts(receipt_svc, id, number, invoice_id, includes, limit)
        else:
            data = _handle_audit(audit, id, entity_type, action, limit)

        return success_response(data, request_id).model_dump(mode="json")

    return router


def _handle_jobs(job_svc, id, number, status, filter, limit):
    if id:
        job = _one(job_svc.get_by_id(UUID(id)), "Job", id)
        job["available_transitions"] = [s.value for s in job_svc.available_transitions(job["status"])]
        return job

    if number:
        return _one(job_svc.get_by_number(number), "Job", number)

    if status:
        return _many(job_svc.list_by_status(status)[:limit])

    if filter == "active":
        return _many(job_svc.list_active()[:limit])

    if filter == "today":
        return _many(job_svc.list_today()[:limit])

    return _many(job_svc.list_all(limit))


def _handle_quotations(quotation_svc, id, number, status, job_id, limit):
    if id:
        return _one(quotation_svc.get_by_id(UUID(id)), "Quotation", id)

    if number:
        return _one(quotation_svc.get_by_number(number), "Quotation", number)

    if status:
        return _many(quotation_svc.list_by_status(status)[:limit])

    if job_id:
        return _many(quotation_svc.list_for_job(UUID(job_id))[:limit])

    return _many(quotation_svc.list_all(limit))


def _handle_invoices(invoice_svc, id, number, status, quotation_id, filter, limit):
    if id:
        return _one(invoice_svc.get_by_id(UUID(id)), "Invoice", id)

    if number:
        return _one(invoice_svc.get_by_number(number), "Invoice", number)

    if status:
        return _many(invoice_svc.list_by_status(status)[:limit])

    if quotation_id:
        return _many(invoice_svc.list_for_quotation(UUID(quotation_id))[:limit])

    if filter == "outstanding":
        return _many(invoice_svc.list_outstanding()[:limit])

    return _many(invoice_svc.list_all(limit))


def _handle_payments(payment_svc, id, invoice_id, limit):
    if id:
        return _one(payment_svc.get_by_id(UUID(id)), "Payment", id)

    if invoice_id:
        invoice_uuid = UUID(invoice_id)
        return {
            "payments": _many(payment_svc.list_for_invoice(invoice_uuid)),
            "total_cents": payment_svc.total_for_invoice(invoice_uuid),
        }

    return _many(payment_svc.list_recent(limit))


def _handle_receipts(receipt_svc, id, number, invoice_id, includes, limit):
    if id:
        if "details" in includes:
            details = receipt_svc.get_with_details(UUID(id))
            return {
                "receipt": details.receipt.model_dump(mode="json"),
                "invoice": details.invoice.model_dump(mode="json"),
                "payments": _many(details.payments),
            }
        return _one(receipt_svc.get_by_id(UUID(id)), "Receipt", id)

    if number:
        return _one(receipt_svc.get_by_number(number), "Receipt", number)

    if invoice_id:
        return _one(receipt_svc.get_by_invoice(UUID(invoice_id)), "Receipt for invoice", invoice_id)

    return _many(receipt_svc.list_all(limit))


def _handle_audit(audit, id, entity_type, action, limit):
    if entity_type:
        if not id:
            raise ValueError("'audit' type with 'entity_type' requires 'id' parameter")
        return _many(audit.get_entity_history(EntityType(entity_type), UUID(id))[:limit])

    if action:
        return _many(audit.list_by_action(AuditAction(action), limit))

    return _many(audit.list_recent(limit))
