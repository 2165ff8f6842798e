import logging
from pythonjsonlogger import jsonlogger


def setup_logger(level: str = 'INFO', json: bool = True) -> None:
    logger = logging.getLogger('squadz')
    logger.setLevel(level)
    if logger.handlers:
        return
    logHandler = logging.StreamHandler()
    if json:
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s'
        )
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
