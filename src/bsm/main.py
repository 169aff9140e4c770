from __future__ import annotations

import logging

from bsm.application.container import build_container
from bsm.config import get_app_paths, get_log_level
from bsm.logging_config import setup_logging

log = logging.getLogger(__name__)


def main() -> None:
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=get_log_level())

    container = build_container(paths.db_path)
    log.info(
        "database_ready path=%s schema_version=%s logs=%s",
        paths.db_path,
        container.repo.schema_version(),
        paths.logs_dir,
    )
    print(f"Database ready at {paths.db_path}")


if __name__ == "__main__":
    main()
