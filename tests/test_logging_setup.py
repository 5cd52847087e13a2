import logging

from mandeldeep.util.logging_setup import configure_root_logging, get_logger


def _reset():
    logger = get_logger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    routed = logging.getLogger("py.warnings")
    routed.propagate = True
    for h in list(routed.handlers):
        routed.removeHandler(h)
    logging.captureWarnings(False)


def test_file_handler_and_warnings(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    try:
        logger = configure_root_logging(level=logging.DEBUG, console=False, log_file=str(log_file))
        assert logger is get_logger()
        assert not logger.propagate
        logger.info("orbit length=%s", 42)
        logging.getLogger("py.warnings").warning("overflow in encode")
        for h in logger.handlers:
            h.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "INFO mandeldeep - orbit length=42" in text
        assert "overflow in encode" in text
        assert logging.getLogger("numba").level == logging.WARNING
    finally:
        _reset()


def test_reconfigure_replaces_handlers(tmp_path):
    try:
        configure_root_logging(console=True, log_file=str(tmp_path / "a.log"))
        logger = configure_root_logging(console=True, log_file=None)
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)
    finally:
        _reset()
