"""
Testes do sistema de logging (flags globais e loggers por assunto).
"""

from bomcalc.infra import logger


def test_logging_disabled_writes_nothing(tmp_path, monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    monkeypatch.setattr(logger, "ENABLE_OUTPUT", False)
    log_file = tmp_path / "calc.log"
    monkeypatch.setattr(logger, "calculation_logger", logger.setup_logger("bomcalc.test.off", str(log_file)))

    logger.log_calculation("aggregated", "PO-1", raw=2)
    assert not log_file.exists()
    assert logger.get_log_summary("calculations") is None


def test_missing_formula_logged_as_warning(tmp_path, monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    log_file = tmp_path / "calc.log"
    test_logger = logger.setup_logger("bomcalc.test.calc", str(log_file))
    monkeypatch.setattr(logger, "calculation_logger", test_logger)

    logger.log_calculation("missing_formula", "PO-1", product_name="Gamma", quantity=7.0)
    logger.log_calculation("aggregated", "PO-1", raw=2)
    for h in test_logger.handlers:
        h.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "WARNING - CALC_MISSING_FORMULA" in content
    assert "'product_name': 'Gamma'" in content
    assert "INFO - CALC_AGGREGATED" in content


def test_allocation_and_remediation_levels(tmp_path, monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    alloc_file, rem_file = tmp_path / "alloc.log", tmp_path / "rem.log"
    alloc_logger = logger.setup_logger("bomcalc.test.alloc", str(alloc_file))
    rem_logger = logger.setup_logger("bomcalc.test.rem", str(rem_file))
    monkeypatch.setattr(logger, "allocation_logger", alloc_logger)
    monkeypatch.setattr(logger, "remediation_logger", rem_logger)

    logger.log_allocation("status_mismatch", "PO-1", level="warning", upstream="allocated", derived="partial")
    logger.log_remediation("trigger_failed", "PO-1", level="error", trigger="generate_production_for_shortages")
    for h in alloc_logger.handlers + rem_logger.handlers:
        h.flush()

    assert "WARNING - ALLOC_STATUS_MISMATCH" in alloc_file.read_text(encoding="utf-8")
    assert "ERROR - REMEDIATION_TRIGGER_FAILED" in rem_file.read_text(encoding="utf-8")
