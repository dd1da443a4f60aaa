"""
Read-only reporting over the ledger.

Day and month boundaries are taken in the business timezone.
"""

from datetime import date, datetime, timedelta

from pydantic import BaseModel

from core.config import LedgerConfig
from core.models import JobStatus
from core.services.invoice_service import InvoiceService
from core.services.job_service import JobService
from core.services.payment_service import PaymentService
from utils.timezone import business_date, day_bounds, month_bounds, now_utc

# Jobs still on the bench: not yet ready for pickup, not closed.
_ACTIVE_JOB_STATUSES = frozenset({
    JobStatus.RECEIVED, JobStatus.DIAGNOSE, JobStatus.QUOTED, JobStatus.IN_PROGRESS
})


class DashboardStats(BaseModel):
    """Headline numbers for the front desk."""

    jobs_today: int
    active_jobs: int
    outstanding_invoices: int
    outstanding_balance_cents: int
    payments_today_cents: int
    payments_month_cents: int


class DailySummary(BaseModel):
    """Activity for one business day."""

    date: date
    jobs_created: int
    jobs_closed: int
    invoices_created: int
    invoices_paid: int
    payments_received_cents: int


class ReportService:
    """Service for dashboard and summary reports."""

    def __init__(
        self,
        jobs: JobService,
        invoices: InvoiceService,
        payments: PaymentService,
        config: LedgerConfig | None = None
    ):
        self.jobs = jobs
        self.invoices = invoices
        self.payments = payments
        self.config = config or LedgerConfig()

    def dashboard_stats(self, now: datetime | None = None) -> DashboardStats:
        """
        Compute the dashboard figures as of now.

        Args:
            now: Reference instant (defaults to the current time)
        """
        now = now or now_utc()
        tz = self.config.timezone
        today = business_date(now, tz)
        day_start, day_end = day_bounds(today, tz)
        month_start, month_end = month_bounds(today, tz)

        jobs = self.jobs.list_all()
        outstanding = self.invoices.list_outstanding()

        return DashboardStats(
            jobs_today=sum(1 for job in jobs if day_start <= job.created_at < day_end),
            active_jobs=sum(1 for job in jobs if job.status in _ACTIVE_JOB_STATUSES),
            outstanding_invoices=len(outstanding),
            outstanding_balance_cents=sum(invoice.balance_cents for invoice in outstanding),
            payments_today_cents=self.payments.total_received(day_start, day_end),
            payments_month_cents=self.payments.total_received(month_start, month_end),
        )

    def daily_summaries(self, days: int = 7, now: datetime | None = None) -> list[DailySummary]:
        """
        Per-day activity for the last `days` business days, today first.
        """
        now = now or now_utc()
        tz = self.config.timezone
        today = business_date(now, tz)
        jobs = self.jobs.list_all()
        invoices = self.invoices.list_all()

        summaries = []
        for offset in range(days):
            day = today - timedelta(days=offset)
            start, end = day_bounds(day, tz)

            def in_day(moment: datetime | None) -> bool:
                return moment is not None and start <= moment < end

            summaries.append(DailySummary(
                date=day,
                jobs_created=sum(1 for job in jobs if in_day(job.created_at)),
                jobs_closed=sum(1 for job in jobs if job.is_closed and in_day(job.closed_at)),
                invoices_created=sum(1 for invoice in invoices if in_day(invoice.created_at)),
                # Paid invoices are immutable, so updated_at is when they became paid.
                invoices_paid=sum(
                    1 for invoice in invoices if invoice.is_paid and in_day(invoice.updated_at)
                ),
                payments_received_cents=self.payments.total_received(start, end),
            ))

        return summaries
