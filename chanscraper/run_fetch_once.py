from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path

from chanscraper.chan_client import ChanClient
from chanscraper.errors import ChanError
from chanscraper.settings import load_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)

logger = logging.getLogger(__name__)


def main() -> None:
    s = load_settings()
    client = ChanClient.from_settings(s)

    boards = client.get_boards()
    logger.info("Fetched boards: %s (fallback=%s)", len(boards), sum(1 for b in boards if b.fallback))

    threads = client.get_threads(s.board_id, page=s.page)
    logger.info("Fetched threads: board=%s page=%s count=%s", s.board_id, s.page, len(threads))

    # No threads usually means the DOM changed; keep the page for selector work.
    if not threads and s.dump_html_on_empty:
        try:
            html = client.fetch_board_html(s.board_id, s.page)
        except ChanError as e:
            logger.warning("No threads parsed and board page unavailable: err=%s", e)
        else:
            Path(s.dump_html_path).write_text(html, encoding="utf-8")
            logger.warning("No threads parsed. Dumped HTML to: %s", s.dump_html_path)

    details = [client.get_thread(s.board_id, t.id) for t in threads[: s.max_threads_to_print]]

    sample = {
        "boards": [asdict(b) for b in boards],
        "threads": [
            {
                "id": d.id,
                "title": d.title,
                "url": d.url,
                "image_url": d.image_url,
                "replies": len(d.posts),
                "error": d.error,
                "text_preview": (d.text[:120] + "…") if len(d.text) > 120 else d.text,
            }
            for d in details
        ],
    }
    print(json.dumps(sample, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
