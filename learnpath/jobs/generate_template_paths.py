# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Generate template learning paths from active nodes.

Run:
    python -m learnpath.jobs.generate_template_paths

The database URL comes from LEARNPATH_DB_URL. Exit code is 0 on success
and 1 if the run failed; a failed run writes nothing.
"""

import asyncio
import sys
from uuid import uuid4

from learnpath.core.config.settings import Settings, get_settings
from learnpath.domains.paths.generator import TemplatePathGenerator
from learnpath.domains.paths.schemas import GenerationSummary
from learnpath.infrastructure.database.connection import (
    close_database,
    create_schema,
    get_session,
    init_database,
)
from learnpath.utils.datetime import format_iso, utc_now
from learnpath.utils.logging import bind_context, clear_context, get_logger, setup_logging

logger = get_logger(__name__)


async def run(settings: Settings) -> GenerationSummary:
    """Run one generation pass against the configured database."""
    await init_database(settings)
    try:
        await create_schema()
        async with get_session() as session:
            return await TemplatePathGenerator(session, settings).generate()
    finally:
        await close_database()


def main() -> int:
    settings = get_settings()
    setup_logging(settings)
    bind_context(job="generate_template_paths", run_id=str(uuid4()))

    try:
        logger.info("template_generation_started", started_at=format_iso(utc_now()))
        try:
            summary = asyncio.run(run(settings))
        except Exception as e:
            logger.exception("template_generation_failed", error=str(e))
            return 1

        logger.info(
            "template_generation_finished",
            created=summary.created_count,
            skipped=summary.skipped_count,
            total_nodes=summary.total_nodes,
            ungrouped=len(summary.ungrouped_nodes),
        )
        return 0
    finally:
        clear_context()


if __name__ == "__main__":
    sys.exit(main())
