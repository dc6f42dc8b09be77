import argparse
import json
import logging
import sys

from core.app_context import AppContext
from core.config_loader import load_config
from core.exceptions import ServiceException
from core.jobs.bulk import load_rows
from database.init_db import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def run_init_db(ctx: AppContext, args) -> int:
    init_db(ctx.database.engine)
    return 0


def run_serve(ctx: AppContext, args) -> int:
    import uvicorn

    host = args.host or ctx.config.web.host
    port = args.port or ctx.config.web.port
    logger.info(f"Starting Care Shift API on {host}:{port}")
    uvicorn.run("web.backend.app:app", host=host, port=port, reload=False, log_level="info")
    return 0


def run_import_jobs(ctx: AppContext, args) -> int:
    """Validate a CSV/XLSX file of job posts and, unless --dry-run, create the valid rows."""
    rows = load_rows(args.file)

    if args.dry_run:
        result = ctx.bulk_importer.parse_bulk_job_data(args.owner_id, rows).to_dict()
        failed = result['summary']['invalid']
    else:
        result = ctx.bulk_importer.create_bulk_jobs(args.owner_id, rows)
        failed = result['summary']['invalid'] + result['summary']['failed']

    print(json.dumps(result, indent=2, default=str))
    logger.info(f"Import finished: {result['summary']}")
    return 1 if failed else 0


COMMANDS = {
    'init-db': run_init_db,
    'serve': run_serve,
    'import-jobs': run_import_jobs,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Care shift scheduling service")
    parser.add_argument('--config', type=str, default='config.yaml', help='Path to config.yaml')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('init-db', help='Create database tables')

    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', type=str, default=None)
    serve.add_argument('--port', type=int, default=None)

    import_jobs = subparsers.add_parser('import-jobs', help='Bulk import job posts from CSV or XLSX')
    import_jobs.add_argument('file', type=str, help='CSV or XLSX file')
    import_jobs.add_argument('--owner-id', type=str, required=True, help='Job poster user id')
    import_jobs.add_argument('--dry-run', action='store_true', help='Validate only; create nothing')

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    ctx = AppContext.build(config)

    try:
        return COMMANDS[args.command](ctx, args)
    except ServiceException as e:
        logger.error(f"{e.__class__.__name__}: {e.message}")
        for detail in e.details:
            logger.error(f"  - {detail}")
        return 1
    finally:
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
