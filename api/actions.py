"""POST /api/actions - unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.models import (
    JobCreate, JobCostsUpdate, JobNotesUpdate, JobStatus, JobTaskInput,
    QuotationCreate, QuotationUpdate, QuotationStatus,
    InvoiceCreate,
    PaymentCreate,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def _uuid(data: dict, key: str = "id") -> UUID:
    value = data.pop(key, None)
    if value is None:
        raise ValueError(f"'{key}' is required")
    return UUID(str(value))


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "job": JobHandler(services["job"]),
        "quotation": QuotationHandler(services["quotation"]),
        "invoice": InvoiceHandler(services["invoice"]),
        "payment": PaymentHandler(services["payment"], services["invoice"]),
        "receipt": ReceiptHandler(services["receipt"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(
            result, getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class JobHandler:
    ALLOWED_ACTIONS = {
        "create", "transition", "assign", "update_tasks", "toggle_task",
        "update_notes", "update_costs", "delete",
    }

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        job = self.service.create(JobCreate(**data))
        return job.model_dump(mode="json")

    def _handle_transition(self, data: dict):
        job = self.service.transition(_uuid(data), JobStatus(data.get("status")))
        return job.model_dump(mode="json")

    def _handle_assign(self, data: dict):
        user_id = data.get("user_id")
        job = self.service.assign(_uuid(data), UUID(user_id) if user_id else None)
        return job.model_dump(mode="json")

    def _handle_update_tasks(self, data: dict):
        job_id = _uuid(data)
        tasks = [JobTaskInput(**task) for task in data.get("tasks", [])]
        job = self.service.update_tasks(job_id, tasks)
        return job.model_dump(mode="json")

    def _handle_toggle_task(self, data: dict):
        job = self.service.toggle_task(_uuid(data), _uuid(data, "task_id"))
        return job.model_dump(mode="json")

    def _handle_update_notes(self, data: dict):
        job_id = _uuid(data)
        job = self.service.update_notes(job_id, JobNotesUpdate(**data))
        return job.model_dump(mode="json")

    def _handle_update_costs(self, data: dict):
        job_id = _uuid(data)
        job = self.service.update_costs(job_id, JobCostsUpdate(**data))
        return job.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        job_id = _uuid(data)
        deleted = self.service.delete(job_id)
        if not deleted:
            raise ValueError(f"Job {job_id} not found")
        return {"deleted": True}


class QuotationHandler:
    ALLOWED_ACTIONS = {"create", "transition", "edit", "sweep_expirations"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        quotation = self.service.create(QuotationCreate(**data))
        return quotation.model_dump(mode="json")

    def _handle_transition(self, data: dict):
        quotation = self.service.transition(_uuid(data), QuotationStatus(data.get("status")))
        return quotation.model_dump(mode="json")

    def _handle_edit(self, data: dict):
        quotation_id = _uuid(data)
        quotation = self.service.edit(quotation_id, QuotationUpdate(**data))
        return quotation.model_dump(mode="json")

    def _handle_sweep_expirations(self, data: dict):
        expired = self.service.sweep_expirations()
        return [q.model_dump(mode="json") for q in expired]


class InvoiceHandler:
    ALLOWED_ACTIONS = {"create", "create_from_quotation", "cancel"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        invoice = self.service.create(InvoiceCreate(**data))
        return invoice.model_dump(mode="json")

    def _handle_create_from_quotation(self, data: dict):
        invoice = self.service.create_from_quotation(_uuid(data, "quotation_id"))
        return invoice.model_dump(mode="json")

    def _handle_cancel(self, data: dict):
        invoice = self.service.cancel(_uuid(data), data.get("reason"))
        return invoice.model_dump(mode="json")


class PaymentHandler:
    ALLOWED_ACTIONS = {"record"}

    def __init__(self, service, invoice_service):
        self.service = service
        self.invoice_service = invoice_service

    def _handle_record(self, data: dict):
        payment = self.service.record_payment(PaymentCreate(**data))
        invoice = self.invoice_service.require(payment.invoice_id)
        return {
            "payment": payment.model_dump(mode="json"),
            "invoice": invoice.model_dump(mode="json"),
        }


class ReceiptHandler:
    ALLOWED_ACTIONS = {"generate"}

    def __init__(self, service):
        self.service = service

    def _handle_generate(self, data: dict):
        receipt = self.service.generate(_uuid(data, "invoice_id"))
        return receipt.model_dump(mode="json")
