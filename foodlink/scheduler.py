from apscheduler.schedulers.background import BackgroundScheduler


def run_expiry_sweep(app):
    with app.app_context():
        app.extensions["expiry_sweep"].run()


def start_scheduler(app):
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        func=run_expiry_sweep,
        args=[app],
        trigger="interval",
        seconds=app.config.get("EXPIRY_SWEEP_INTERVAL_SECONDS", 60),
        id="expiry_sweep",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.start()
    app.logger.info(
        "Scheduler started: expiry_sweep every %s seconds", app.config.get("EXPIRY_SWEEP_INTERVAL_SECONDS", 60)
    )
    return scheduler
