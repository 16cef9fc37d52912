import time
from threading import Thread

import requests
import schedule
import uvicorn
from fastapi import FastAPI
from tenacity import RetryError, retry, stop_after_attempt, wait_fixed

from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings

# Setup logging
logger = setup_logging("scheduler")

settings = get_settings()
FEED_API_URL = settings.scheduler.feed_api_url.rstrip("/")
REQUEST_TIMEOUT = settings.scheduler.request_timeout


@retry(stop=stop_after_attempt(3), wait=wait_fixed(30))
def trigger_generation():
    """Ask the feed API to generate today's groups; same path as a manual POST."""
    url = f"{FEED_API_URL}/api/generate"
    logger.info(f"Triggering generation at {url}")
    response = requests.post(url, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    data = response.json()
    logger.info(f"Generation finished: {data.get('count', 0)} item(s) across {len(data.get('results', []))} group(s)")
    return data


def daily_job():
    """The job to be run daily."""
    logger.info("[CRON] Generating daily feed...")
    try:
        trigger_generation()
    except RetryError:
        logger.error("Generation trigger failed after 3 attempts; waiting for the next schedule")
        return
    except Exception:
        logger.exception("Failed to trigger generation")
        return
    logger.info("[CRON] Done.")


def schedule_daily(scheduler: schedule.Scheduler = schedule.default_scheduler) -> schedule.Job:
    return scheduler.every().day.at(settings.scheduler.run_at, settings.scheduler.timezone).do(daily_job)


def run_schedule():
    """Run the scheduler."""
    schedule_daily()
    logger.info(f"Daily generation scheduled at {settings.scheduler.run_at} {settings.scheduler.timezone}")

    while True:
        schedule.run_pending()
        time.sleep(1)


# FastAPI app for health checks
app = FastAPI()


@app.get("/health")
def health_check():
    next_run = schedule.next_run()
    return {"status": "ok", "next_run": next_run.isoformat() if next_run else None}


def run_fastapi():
    """Run the FastAPI app."""
    uvicorn.run(app, host="0.0.0.0", port=8005)


if __name__ == "__main__":
    # Run the scheduler in a separate thread
    scheduler_thread = Thread(target=run_schedule, daemon=True)
    scheduler_thread.start()

    # Run the FastAPI app in the main thread
    run_fastapi()
