import logging
import sys
import warnings

from cfn_hotswap import config, constants

from .format import AddFormattedAttributes, CliFormatter, DefaultFormatter

default_log_levels = {
    "boto3": logging.INFO,
    "botocore": logging.ERROR,
    "s3transfer": logging.INFO,
    "urllib3": logging.WARNING,
}

trace_log_levels = {
    "botocore": logging.DEBUG,
    "urllib3": logging.DEBUG,
}


def setup_logging_for_cli(log_level=logging.INFO):
    log_handler = logging.StreamHandler(stream=sys.stderr)
    log_handler.setLevel(log_level)
    log_handler.setFormatter(CliFormatter())

    logging.basicConfig(level=log_level, handlers=[log_handler], force=True)

    # set log levels of loggers
    logging.root.setLevel(log_level)
    logging.getLogger("cfn_hotswap").setLevel(log_level)
    for logger, level in default_log_levels.items():
        logging.getLogger(logger).setLevel(level)


def get_log_level_from_config():
    # HOTSWAP_LOG takes precedence over DEBUG
    if config.HOTSWAP_LOG:
        log_level = str(config.HOTSWAP_LOG).upper()
        if log_level.lower() in constants.TRACE_LOG_LEVELS:
            log_level = "DEBUG"
        return logging.getLevelName(log_level)

    return logging.DEBUG if config.DEBUG else logging.INFO


def setup_logging_from_config():
    log_level = get_log_level_from_config()
    setup_logging(log_level)

    if config.is_trace_logging_enabled():
        for name, level in trace_log_levels.items():
            logging.getLogger(name).setLevel(level)


def create_default_handler(log_level: int):
    log_handler = logging.StreamHandler(stream=sys.stderr)
    log_handler.setLevel(log_level)
    log_handler.setFormatter(DefaultFormatter())
    log_handler.addFilter(AddFormattedAttributes())
    return log_handler


def setup_logging(log_level=logging.INFO) -> None:
    """
    Configures the python logging environment for the hotswap engine.

    :param log_level: the optional log level.
    """
    log_handler = create_default_handler(log_level)

    # replace any existing handlers
    logging.basicConfig(level=log_level, handlers=[log_handler], force=True)

    # boto emits deprecation warnings for every client creation
    warnings.filterwarnings("ignore")
    logging.captureWarnings(True)

    logging.root.setLevel(log_level)
    logging.getLogger("cfn_hotswap").setLevel(log_level)
    for logger, level in default_log_levels.items():
        logging.getLogger(logger).setLevel(level)
