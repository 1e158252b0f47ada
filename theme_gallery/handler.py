"""
AWS Lambda entrypoint for the theme gallery crawler

Event-driven handler triggered by a scheduler. No HTTP server logic,
just direct function invocation.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from theme_gallery.config.database import init_db
from theme_gallery.jobs.gallery_sync import run_gallery_sync, run_theme_download
from theme_gallery.orchestrator import GalleryOrchestrator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Instantiate orchestrator once per Lambda execution environment
orchestrator = GalleryOrchestrator()


def lambda_handler(event: Optional[Dict[str, Any]], context: Any) -> Dict[str, Any]:
    """
    AWS Lambda entrypoint for the theme gallery crawler.

    Dispatches on `event["source"]`:
    - {"source": "sync"} or {"source": "sync", "providers": "colorsublime,vs-marketplace"}
    - {"source": "download", "dest_dir": "/tmp/themes"}

    Default is "sync" if no source is provided.

    Returns:
        Dictionary with statusCode, source, and result
    """
    event = event or {}
    source = event.get("source", "sync")
    logger.info(f"Lambda invoked with source: {source}")

    try:
        if source == "sync":
            init_db()
            result = asyncio.run(
                run_gallery_sync(orchestrator=orchestrator, providers=event.get("providers"))
            )

        elif source == "download":
            result = asyncio.run(
                run_theme_download(
                    snapshot_path=event.get("snapshot_path"),
                    dest_dir=event.get("dest_dir"),
                )
            )

        else:
            error_msg = f"Unknown source: {source}"
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.info(f"Job completed successfully: {source}")

        return {
            "statusCode": 200,
            "source": source,
            "result": result,
        }

    except Exception as e:
        logger.error(f"Lambda execution failed: {e}", exc_info=True)
        return {
            "statusCode": 500,
            "source": source,
            "error": str(e),
        }


# Allow local runs via `python -m theme_gallery.handler`
if __name__ == "__main__":
    print(lambda_handler({"source": "sync"}, None))
