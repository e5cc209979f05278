#!/usr/bin/env python3
"""
Celery worker for the KIC payments service.
Delivers payment notification e-mails queued by the M-Pesa callback.
"""

from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    from core.celery import celery_app

    celery_app.start([
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        "--without-gossip",
        "--without-mingle",
    ])
