from __future__ import annotations
import logging
from capability_loader.core.config import settings
from capability_loader.core.logging_config import configure_logging

_log = logging.getLogger('capability_loader.entrypoint')


def main():  # pragma: no cover
    configure_logging(settings.log_level)
    _log.info("starting version=%s log_level=%s", settings.version, settings.log_level)
    if settings.catalog_file is not None:
        _log.info("catalog_file=%s", settings.catalog_file)
    import uvicorn
    _log.info("launching uvicorn on %s:%s", settings.host, settings.port)
    try:
        uvicorn.run(
            'capability_loader.main:app',
            host=settings.host,
            port=settings.port,
            reload=False,
            log_level=settings.log_level.lower(),
        )
    finally:
        _log.info("uvicorn stopped")


if __name__ == '__main__':  # pragma: no cover
    main()
