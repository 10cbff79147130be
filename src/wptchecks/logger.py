import logging

import notifiers.logging

from wptchecks import config

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def configure_logging() -> None:
    logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
    logging.getLogger().setLevel(config.OVERRIDE_LOGGING)


def get_log_handlers(logger):
    """Attach a Telegram handler to ``logger`` if a bot token is configured."""
    if config.TELEGRAM_TOKEN is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": config.TELEGRAM_TOKEN,
            "chat_id": config.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(config.NOTIFY_LOG_LEVEL)
    # prod and staging alert into the same chat
    handler.setFormatter(
        logging.Formatter(
            f"[wptchecks {config.CHECKS_ENVIRONMENT}] %(levelname)s %(message)s"
        )
    )
    logger.addHandler(handler)
    return [handler]
