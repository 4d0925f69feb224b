from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI

from .config import Settings, settings
from .db.database import create_engine_and_sessionmaker, init_db
from .logger import configure_logging, log_exception, logger
from .routers import cron
from .service import SelectiveCronService, import_job_modules


def create_ticker(
    service: SelectiveCronService, cron_expression: str, timezone: str = "UTC"
) -> AsyncIOScheduler:
    """
    Create the scheduler that drives advance and run.

    Both run in one job, one after the other, so a tick always provisions
    before it executes.
    """

    @log_exception("Selective cron tick")
    async def tick() -> None:
        await service.advance()
        await service.run()

    ticker = AsyncIOScheduler()
    ticker.add_job(
        tick,
        trigger=CronTrigger.from_crontab(cron_expression, timezone=timezone),
        id="selective_cron_tick",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return ticker


def create_app(
    service: Optional[SelectiveCronService] = None,
    app_settings: Settings = settings,
) -> FastAPI:
    """
    Create the API application.

    Without a service, one is built from the settings at startup, the
    database is initialised and the ticker starts (unless disabled).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ticker = None
        engine = None
        if app.state.service is None:
            configure_logging(app_settings.logs_dir)
            logger.info("Starting up and initializing the database...")
            import_job_modules(app_settings.job_modules)
            engine, session_maker = create_engine_and_sessionmaker(
                app_settings.database_url, echo=app_settings.database_echo
            )
            await init_db(engine)
            app.state.service = SelectiveCronService.from_settings(
                app_settings, session_factory=session_maker
            )

            if app_settings.selective_cron.ticker_enabled:
                cron_settings = app_settings.selective_cron
                ticker = create_ticker(
                    app.state.service, cron_settings.ticker_cron, cron_settings.timezone
                )
                ticker.start()
            logger.info("Startup complete.")
        yield
        if ticker is not None and ticker.running:
            ticker.shutdown()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(lifespan=lifespan, title="Selective Cron")
    app.state.service = service
    app.state.settings = app_settings
    app.include_router(cron.router, prefix="/api")
    return app


app = create_app()
