import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT   = '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
ERROR_FORMAT = LOG_FORMAT + '\nPath: %(pathname)s:%(lineno)d\n'


def _rotating_handler(path, level, fmt):
    handler = RotatingFileHandler(path, maxBytes=10240000, backupCount=3)   # 10MB
    handler.setFormatter(logging.Formatter(fmt))
    handler.setLevel(level)
    return handler


def setup_logging(app):
    """
    Send app and service logs to LOG_DIR/app.log (INFO+) and
    LOG_DIR/error.log (ERROR+, with source location). Debug runs also
    echo to the console.
    """
    log_dir = app.config.get('LOG_DIR', 'logs')
    os.makedirs(log_dir, exist_ok=True)

    handlers = [
        _rotating_handler(os.path.join(log_dir, 'app.log'), logging.INFO, LOG_FORMAT),
        _rotating_handler(os.path.join(log_dir, 'error.log'), logging.ERROR, ERROR_FORMAT),
    ]
    if app.debug:
        console = logging.StreamHandler()
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        handlers.append(console)

    # Services log through getLogger(__name__), i.e. under 'qrcheckin'
    for logger in (app.logger, logging.getLogger('qrcheckin')):
        for handler in handlers:
            logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    app.logger.info('QR check-in service started (log dir: %s)', log_dir)
