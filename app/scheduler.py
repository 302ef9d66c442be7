# app/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .config import get_settings
from .services import process_queue_job
from .utils import logger

scheduler = BackgroundScheduler()

def start_scheduler(interval_minutes=None):
    interval = get_settings().process_queue_interval_minutes if interval_minutes is None else interval_minutes
    if interval <= 0:
        logger.info("Scheduled queue processing disabled")
        return None
    scheduler.add_job(process_queue_job, 'interval', minutes=interval, max_instances=1, coalesce=True, id="process-queue", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started (every %d min)", interval)
    return scheduler
