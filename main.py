"""Example entry point: run a few calls against the configured API."""

import asyncio
import logging
import os

from universal_http import ClientConfig, EnvSettings, EnvTokenStore, Result, create_client


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _report(logger: logging.Logger, label: str, result: Result) -> None:
    if result.error is not None:
        logger.warning("%s failed: %s", label, result.error.model_dump(mode="json"))
    else:
        logger.info("%s succeeded: %s", label, result.data)


async def run_examples(settings: EnvSettings) -> None:
    logger = logging.getLogger("universal-http")
    config = ClientConfig.from_token_store(
        settings.base_url,
        EnvTokenStore(settings.token_var),
        default_headers={"User-Agent": "universal-http-example/0.1.0"},
        timeout_ms=settings.timeout_ms,
    )

    async with create_client(config) as client:
        _report(logger, "GET /api/hello", await client.get("/api/hello"))
        _report(
            logger,
            "POST /api/users",
            await client.post(
                "/api/users",
                {"name": "Universal User", "email": "user@example.com"},
                headers={"X-Custom-Header": "custom-value"},
            ),
        )
        _report(
            logger,
            "PUT /api/users/123",
            await client.put("/api/users/123", {"name": "Updated User", "email": "updated@example.com"}),
        )
        _report(logger, "DELETE /api/users/123", await client.delete("/api/users/123"))


def main() -> None:
    """Load settings from the environment and run the example calls."""
    _configure_logging()
    logger = logging.getLogger("universal-http")
    settings = EnvSettings.load()

    try:
        asyncio.run(run_examples(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted (Ctrl+C).")
    except Exception:
        logger.exception("Examples stopped due to an unexpected error.")
        raise


if __name__ == "__main__":
    main()
