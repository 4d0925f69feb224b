import argparse
import asyncio
from typing import Optional, Sequence

from .config import Settings, load_settings
from .db.database import create_engine_and_sessionmaker, init_db
from .logger import configure_logging, logger
from .models import ScheduleStatus
from .service import SelectiveCronService, import_job_modules


async def run_command(args: argparse.Namespace, app_settings: Settings) -> int:
    engine, session_maker = create_engine_and_sessionmaker(
        app_settings.database_url, echo=app_settings.database_echo
    )
    try:
        await init_db(engine)
        service = SelectiveCronService.from_settings(
            app_settings, session_factory=session_maker
        )

        if args.command == "reset":
            report = await service.reset()
            print(
                f"Schedule reset. Jobs scheduled: {report.scheduled}, "
                f"skipped: {report.skipped}, failed: {report.failed}"
            )
        elif args.command == "advance":
            report = await service.advance()
            print(
                f"Jobs scheduled: {report.scheduled}, "
                f"skipped: {report.skipped}, failed: {report.failed}"
            )
        elif args.command == "run":
            print("Running selective cron jobs...")
            run_report = await service.run()
            print(
                f"Selective cron jobs completed. Executed: {run_report.executed}, "
                f"skipped: {run_report.skipped}, failed: {run_report.failed}"
            )
        elif args.command == "jobs":
            selected = set(service.config.get_selected_jobs())
            for job_code in service.registry.job_codes():
                definition = service.registry.get(job_code)
                assert definition is not None
                marker = "*" if job_code in selected else " "
                expression = service.scheduler.resolve_expression(definition)
                print(f"{marker} {job_code:<40} {expression:<20} {definition.group}")
        elif args.command == "schedule":
            status = ScheduleStatus(args.status) if args.status else None
            entries = await service.store.get(
                job_code=args.job_code, status=status, descending=True, limit=args.limit
            )
            for entry in entries:
                print(
                    f"{entry.schedule_id:>8} {entry.job_code:<40} {entry.status.value:<8} "
                    f"{entry.scheduled_at.isoformat()}"
                )
        elif args.command == "config-changed":
            if await service.on_config_changed(args.paths):
                print("Schedule updated.")
            else:
                print("No selective cron configuration changed.")
    finally:
        await engine.dispose()

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="selective-cron", description="Run only the selected cron jobs"
    )
    parser.add_argument("--config", type=str, default=None, help="TOML config file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("reset", help="Truncate and repopulate the schedule")
    subparsers.add_parser("advance", help="Schedule new job instances")
    subparsers.add_parser("run", help="Execute the selected jobs that are due")
    subparsers.add_parser("jobs", help="List registered jobs")

    schedule_parser = subparsers.add_parser("schedule", help="List schedule entries")
    schedule_parser.add_argument("--job-code", type=str, default=None)
    schedule_parser.add_argument(
        "--status", choices=[status.value for status in ScheduleStatus], default=None
    )
    schedule_parser.add_argument("--limit", type=int, default=50)

    changed_parser = subparsers.add_parser(
        "config-changed", help="Reset the schedule if the selection changed"
    )
    changed_parser.add_argument("paths", nargs="+")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    app_settings = load_settings(args.config)

    configure_logging(app_settings.logs_dir)
    import_job_modules(app_settings.job_modules)

    try:
        return asyncio.run(run_command(args, app_settings))
    except Exception as e:
        logger.error(f"selective-cron {args.command} failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
