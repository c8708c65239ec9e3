# expiration.py
import logging
import datetime
from datetime import date, timedelta
from typing import List, Optional

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.background import BackgroundScheduler
from sqlmodel import Session, select

from models import Car, InsurancePolicy

logger = logging.getLogger(__name__)

JOB_ID = "expired-policy-scan"


def utc_today() -> date:
    return datetime.datetime.now(datetime.timezone.utc).date()


def process_expired_policies(
    session: Session,
    today: Optional[date] = None,
    catch_up: bool = True,
) -> List[InsurancePolicy]:
    """
    Mark every newly expired policy as notified and commit once.

    With catch_up, any policy that ended before today and was never marked is
    picked up, so a tick missed during downtime is recovered on the next one.
    Without it only policies that ended exactly yesterday are selected.
    Already-notified policies are never selected again. A failed commit is
    left to propagate and nothing is marked for that run.
    """
    today = today or utc_today()
    yesterday = today - timedelta(days=1)

    stmt = (
        select(InsurancePolicy, Car)
        .join(Car, InsurancePolicy.car_id == Car.id)
        .where(InsurancePolicy.notified == False)  # noqa: E712
        .order_by(InsurancePolicy.id)
    )
    if catch_up:
        stmt = stmt.where(InsurancePolicy.end_date < today)
    else:
        stmt = stmt.where(InsurancePolicy.end_date == yesterday)

    rows = session.exec(stmt).all()
    if not rows:
        logger.info("No new policies expired.")
        return []

    expired = []
    for policy, car in rows:
        logger.warning(
            "[EXPIRATION] Policy for car VIN '%s' (Provider: %s) expired on %s.",
            car.vin, policy.provider, policy.end_date.isoformat(),
        )
        policy.notified = True
        session.add(policy)
        expired.append(policy)

    session.commit()
    logger.info("Processed and marked %d expired policies as notified.", len(expired))
    return expired


class ExpirationScanner:
    """Runs process_expired_policies on a fixed interval in a background thread."""

    def __init__(
        self,
        engine,
        interval_seconds: int = 10,
        catch_up: bool = True,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.catch_up = catch_up
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def run_once(self, today: Optional[date] = None) -> List[InsurancePolicy]:
        # returned policies stay readable after the session closes
        with Session(self.engine, expire_on_commit=False) as session:
            return process_expired_policies(session, today=today, catch_up=self.catch_up)

    def start(self):
        logger.info(
            "Expiration scanner starting (every %ss, catch_up=%s)",
            self.interval_seconds, self.catch_up,
        )
        self.scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.datetime.now(datetime.timezone.utc),
        )
        self.scheduler.start()

    def stop(self):
        if not self.scheduler.running:
            return
        logger.info("Expiration scanner stopping.")
        # waits for an in-flight tick to finish its write
        self.scheduler.shutdown(wait=True)

    def _on_job_error(self, event):
        if event.job_id != JOB_ID:
            return
        logger.critical(
            "Expiration scan failed; no policies were marked on this tick",
            exc_info=event.exception,
        )
