from __future__ import annotations

import argparse
import asyncio
from datetime import datetime

from focuscoach.config import get_settings
from focuscoach.logging_utils import init_logger
from focuscoach.report import export_highlights, render_history_markdown
from focuscoach.storage import HistoryStore, SqliteBlobStore
from focuscoach.utils import ensure_directory


def main() -> None:
    parser = argparse.ArgumentParser(description="Show or export the focus session history")
    parser.add_argument("--export", action="store_true", help="Write the history report to REPORT_EXPORT_DIR")
    parser.add_argument("--highlights", action="store_true", help="Export highlight frames of the latest session")
    args = parser.parse_args()

    settings = get_settings()
    logger = init_logger("history", settings.logging.directory, settings.logging.level)
    store = HistoryStore(SqliteBlobStore(settings.storage.history_db), logger, limit=settings.session.history_limit)
    records = asyncio.run(store.load())

    markdown = render_history_markdown(records)
    if args.export:
        export_dir = ensure_directory(settings.output.export_dir)
        export_path = export_dir / f"history-{datetime.now(tz=settings.timezone).strftime('%Y%m%d')}.md"
        export_path.write_text(markdown, encoding="utf-8")
        logger.info("History report exported to %s", export_path)
        print(f"History report written to {export_path}")
    else:
        print(markdown)

    if args.highlights:
        latest = store.latest
        if latest is None:
            logger.warning("No sessions recorded yet; nothing to export")
            return
        paths = export_highlights(latest, settings.output.export_dir / "highlights", settings.timezone)
        logger.info("Exported %s highlight frames", len(paths))
        for path in paths:
            print(path)


if __name__ == "__main__":
    main()
