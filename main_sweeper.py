"""
main_sweeper.py - Entry point for the daily broken-link cleanup.

Schedule it once a day at SWEEP_RUN_HOUR in SWEEP_TIMEZONE, e.g. with cron:

    0 7 * * * cd /srv/sweeper && python main_sweeper.py
"""

import logging

import typer

import database
from config import Config
from link_sweeper import run_sweep

config = Config()

# Set up logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, config.LOG_LEVEL, logging.INFO)
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="Delete post revisions whose links are broken.", add_completion=False)


class DryRunStore:
    """Reads through to the database but never deletes, enqueues or marks."""

    def __init__(self, store=database):
        self._store = store

    def iter_revision_batches(self, batch_size, window=None):
        return self._store.iter_revision_batches(batch_size, window)

    def get_revision_topic_id(self, revision_id):
        return self._store.get_revision_topic_id(revision_id)

    def get_last_full_sweep(self):
        return self._store.get_last_full_sweep()

    def delete_revision(self, revision_id):
        logger.info("[dry-run] Would delete PostRevision ID: %s", revision_id)
        return False

    def enqueue_reindex(self, topic_id):
        logger.info("[dry-run] Would reindex topic %s", topic_id)

    def mark_full_sweep_completed(self, completed_at):
        logger.info("[dry-run] Would record full sweep at %s", completed_at)


@app.command()
def main(
    dry_run: bool = typer.Option(False, "--dry-run", help="Check links without deleting anything."),
    reset_marker: bool = typer.Option(False, "--reset-marker", help="Forget the first full sweep before running."),
) -> None:
    """Run one sweep over the revisions in scope."""
    try:
        database.create_tables()
        logger.info("Database tables created or already exist.")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")

    if reset_marker:
        database.clear_full_sweep_marker()
        logger.info("Full sweep marker cleared; this run will scan every revision.")

    store = DryRunStore() if dry_run else database
    summary = run_sweep(store=store)

    counts = summary.as_dict()
    typer.echo(
        f"checked={counts['checked']} deleted={counts['deleted']} kept={counts['kept']} "
        f"skipped={counts['skipped']} failed={counts['failed']}"
    )


if __name__ == '__main__':
    app()
