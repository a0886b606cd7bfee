import io
import logging

from ingest.logging.logger import Log


class TestLog:
    def teardown_method(self) -> None:
        logger = logging.getLogger("ingest")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def test_configure_writes_formatted_lines(self) -> None:
        stream = io.StringIO()
        Log.configure("info", stream=stream)

        Log.info("Document 7 processed")
        Log.debug("hidden")

        output = stream.getvalue()
        assert "[INFO] Document 7 processed" in output
        assert "hidden" not in output

    def test_configure_twice_keeps_one_handler(self) -> None:
        stream = io.StringIO()
        Log.configure("INFO", stream=stream)
        Log.configure("DEBUG", stream=io.StringIO())

        Log.debug("once")

        assert len(logging.getLogger("ingest").handlers) == 1
        assert stream.getvalue().count("once") == 1

    def test_exception_includes_traceback(self) -> None:
        stream = io.StringIO()
        Log.configure("INFO", stream=stream)

        try:
            raise ValueError("broken page")
        except ValueError:
            Log.exception("Unexpected error processing document 3")

        output = stream.getvalue()
        assert "[ERROR] Unexpected error processing document 3" in output
        assert "ValueError: broken page" in output
