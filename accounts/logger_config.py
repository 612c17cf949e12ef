import logging.config


def setup_logging(level: str = "INFO") -> None:
    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'verbose': {
                'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
                'style': '{',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'verbose',
            },
        },
        'root': {
            'handlers': ['console'],
            'level': level.upper(),
        },
        'loggers': {
            'httpx': {
                'handlers': ['console'],
                'level': 'WARNING',
                'propagate': False,
            },
        },
    })
