import threading
import time
from typing import Callable

import schedule

from infrastructure.logging import bind_request_context, get_module_logger
from modules.broadcasts.scheduler import SchedulerTrigger

logger = get_module_logger()


def safe_run(job: Callable) -> Callable:
    """Wrap a job so an exception is logged instead of killing the schedule thread."""

    def wrapper(*args, **kwargs):
        try:
            return job(*args, **kwargs)
        except Exception as e:
            logger.error(
                "scheduled_job_failed",
                job=getattr(job, "__name__", repr(job)),
                error=str(e),
            )
            return None

    return wrapper


def reconcile_broadcasts(trigger: SchedulerTrigger):
    """One in-process tick of the broadcast scheduler."""
    with bind_request_context(trigger="schedule"):
        result = trigger.reconcile()
    if result.errors:
        logger.warning(
            "scheduled_reconcile_errors",
            processed=result.processed,
            errors=result.errors,
        )
    return result


def scheduler_heartbeat():
    logger.info("scheduler_heartbeat", time=time.ctime())


def init(trigger: SchedulerTrigger, interval_minutes: int = 5):
    logger.info("scheduled_tasks_initialized", interval_minutes=interval_minutes)

    schedule.every(interval_minutes).minutes.do(
        safe_run(reconcile_broadcasts), trigger=trigger
    )
    schedule.every(5).minutes.do(safe_run(scheduler_heartbeat))


def clear():
    schedule.clear()


def run_continuously(interval=1) -> threading.Event:
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Please note that it is
    *intended behavior that run_continuously() does not run
    missed jobs*. For example, if you've registered a job that
    should run every minute and you set a continuous run
    interval of one hour then your job won't be run 60 times
    at each interval but only once.
    """
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        @classmethod
        def run(cls):
            while not cease_continuous_run.is_set():
                schedule.run_pending()
                time.sleep(interval)

    continuous_thread = ScheduleThread(daemon=True, name="broadcast-scheduler")
    continuous_thread.start()
    return cease_continuous_run
