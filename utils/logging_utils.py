"""
Logging Utilities Module
-----------------------
Provides helpers for setting up the toolbox logger and reporting batch progress.
"""
import logging

from tqdm import tqdm

LOGGER_NAME = 'HRVLogger'


def setup_logging(log_level: str = 'INFO', logger_name: str = LOGGER_NAME) -> logging.Logger:
    """
    Sets up and returns a logger with the specified log level.
    A stream handler is attached once; repeated calls only adjust the level.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logger.addHandler(handler)
    logger.info("LoggingUtils: Logger setup complete.")
    return logger


def log_progress_bar(logger, total_steps, desc="HRV analysis", unit="series"):
    """
    Tracks batch progress on a tqdm bar and mirrors each step to the logger at
    DEBUG level as "<desc> - <done>/<total> <unit> (<rate>)".
    Returns (update, close) functions; close() logs the elapsed time.
    """
    bar = tqdm(total=total_steps, desc=desc, unit=unit, leave=False)

    def update(step=1):
        bar.update(step)
        rate = bar.format_dict.get('rate')
        rate_text = f"{rate:.2f} {unit}/s" if rate else "rate n/a"
        logger.debug(f"{desc} - {bar.n}/{total_steps} {unit} ({rate_text})")

    def close():
        elapsed = bar.format_dict.get('elapsed', 0.0)
        bar.close()
        logger.debug(f"{desc} - finished {bar.n}/{total_steps} {unit} in {elapsed:.1f}s")
    return update, close
