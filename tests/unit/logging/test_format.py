import logging

from cfn_hotswap.logging.format import AddFormattedAttributes, CliFormatter, compress_logger_name


def test_compress_logger_name():
    assert compress_logger_name("log", 1) == "l"
    assert compress_logger_name("log", 2) == "lo"
    assert compress_logger_name("log", 3) == "log"
    assert compress_logger_name("log", 5) == "log"
    assert compress_logger_name("my.very.long.logger.name", 1) == "m.v.l.l.n"
    assert compress_logger_name("my.very.long.logger.name", 11) == "m.v.l.l.nam"
    assert compress_logger_name("my.very.long.logger.name", 12) == "m.v.l.l.name"
    assert compress_logger_name("my.very.long.logger.name", 17) == "m.v.l.logger.name"
    assert compress_logger_name("my.very.long.logger.name", 24) == "my.very.long.logger.name"
    assert (
        compress_logger_name("cfn_hotswap.hotswap.detectors.lambda_functions", 26)
        == "c.h.d.lambda_functions"
    )


def _record(level: int, name: str = "cfn_hotswap.hotswap.applier") -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "hotswapping %s", ("Func",), None)


def test_add_formatted_attributes():
    record = _record(logging.WARNING)
    record.threadName = "hotswap_12345678901234"

    assert AddFormattedAttributes().filter(record)
    assert record.hs_level == "WARN"
    assert record.hs_name == "c.hotswap.applier"
    assert record.hs_thread == "345678901234"


def test_cli_formatter():
    formatter = CliFormatter()

    assert formatter.format(_record(logging.INFO)) == "hotswapping Func"
    assert formatter.format(_record(logging.ERROR)) == "ERROR: hotswapping Func"
