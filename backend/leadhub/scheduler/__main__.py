"""Scheduler entry point: python -m leadhub.scheduler"""
import signal
import sys
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from leadhub.core.config import settings
from leadhub.core.logging import setup_logging, get_logger
from leadhub.scheduler.subscription_expirer import expire_due_subscriptions
from leadhub.scheduler.inactive_user_notifier import notify_inactive_users

setup_logging(debug=settings.DEBUG)
logger = get_logger("scheduler")

scheduler = BlockingScheduler(timezone=settings.SCHEDULER_TIMEZONE)


def signal_handler(sig, frame):
    logger.info("Scheduler received stop signal")
    scheduler.shutdown(wait=False)
    sys.exit(0)


signal.signal(signal.SIGTERM, signal_handler)
signal.signal(signal.SIGINT, signal_handler)


def main():
    logger.info("Scheduler started")

    # every 5 minutes: active → expired
    scheduler.add_job(
        expire_due_subscriptions,
        CronTrigger(minute="*/5", timezone=settings.SCHEDULER_TIMEZONE),
        id="subscription_expirer",
        max_instances=1,
    )

    # 09:00: inactivity reminders
    scheduler.add_job(
        notify_inactive_users,
        CronTrigger(hour=9, minute=0, timezone=settings.SCHEDULER_TIMEZONE),
        id="inactive_user_notifier",
        max_instances=1,
    )

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    main()
