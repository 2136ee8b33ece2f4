"""
Sistema de logging do cálculo de materiais.

Este módulo configura e fornece loggers para registrar as operações
críticas do motor: explosão de requisitos, resumos de alocação,
disparos de remediação e operações no banco de dados.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = _env_flag("BOMCALC_LOGGING")
# Flag global para habilitar/desabilitar prints/output
ENABLE_OUTPUT = _env_flag("BOMCALC_OUTPUT")

def print_system(*args, **kwargs):
    """Print controlado pelo ENABLE_OUTPUT."""
    if ENABLE_OUTPUT:
        print(*args, **kwargs)

# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    O arquivo só é criado na primeira mensagem emitida (``delay=True``).

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Remove handlers existentes (evita duplicação em reimportações)
    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Diretório base para logs (na raiz do projeto, ou BOMCALC_LOGS_DIR)
BASE_DIR = Path(__file__).parent.parent.parent
LOGS_DIR = Path(os.environ.get("BOMCALC_LOGS_DIR") or (BASE_DIR / "logs"))

LOG_FILES = {
    "transactions": LOGS_DIR / "transactions.log",
    "calculations": LOGS_DIR / "calculations.log",
    "allocations": LOGS_DIR / "allocations.log",
    "remediation": LOGS_DIR / "remediation.log",
    "database": LOGS_DIR / "database.log",
    "system": LOGS_DIR / "system.log",
}

# Loggers específicos para cada operação
transaction_logger = setup_logger('bomcalc.transactions', str(LOG_FILES["transactions"]))
calculation_logger = setup_logger('bomcalc.calculations', str(LOG_FILES["calculations"]))
allocation_logger = setup_logger('bomcalc.allocations', str(LOG_FILES["allocations"]))
remediation_logger = setup_logger('bomcalc.remediation', str(LOG_FILES["remediation"]))
database_logger = setup_logger('bomcalc.database', str(LOG_FILES["database"]))
system_logger = setup_logger('bomcalc.system', str(LOG_FILES["system"]))


def _enabled() -> bool:
    return ENABLE_LOGGING or ENABLE_OUTPUT


def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Tipo de operação (calculo, alocacao, remediacao...)
        data: Dados da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not _enabled():
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")


def log_calculation(action: str, order_id: str, **kwargs) -> None:
    """
    Log específico da explosão de requisitos.

    Args:
        action: Etapa (line_exploded, missing_formula, aggregated...)
        order_id: Pedido/lote calculado
        **kwargs: Dados adicionais
    """
    if not _enabled():
        return
    log_data = {"action": action, "order_id": order_id, **kwargs}
    level = logging.WARNING if action.startswith("missing") else logging.INFO
    calculation_logger.log(level, f"CALC_{action.upper()}: {log_data}")


def log_allocation(action: str, order_id: str, level: str = "info", **kwargs) -> None:
    """Log específico dos resumos de alocação (divergências com o upstream em WARNING)."""
    if not _enabled():
        return
    log_data = {"action": action, "order_id": order_id, **kwargs}
    log_method = getattr(allocation_logger, level.lower(), allocation_logger.info)
    log_method(f"ALLOC_{action.upper()}: {log_data}")


def log_remediation(action: str, order_id: str, level: str = "info", **kwargs) -> None:
    """Log específico da sessão de remediação (escolhas, confirmação, adiamento)."""
    if not _enabled():
        return
    log_data = {"action": action, "order_id": order_id, **kwargs}
    log_method = getattr(remediation_logger, level.lower(), remediation_logger.info)
    log_method(f"REMEDIATION_{action.upper()}: {log_data}")


def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de dados.

    Args:
        table: Nome da tabela
        operation: Operação SQL (INSERT, UPDATE, DELETE, SELECT)
        affected_rows: Número de linhas afetadas
        **kwargs: Dados adicionais
    """
    if not _enabled():
        return
    log_data = {"table": table, "operation": operation, "affected_rows": affected_rows, **kwargs}
    database_logger.info(f"DB_{operation}: {log_data}")


def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not _enabled():
        return
    log_data = {"event": event, "details": details or {}}
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")


def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """Log para operações de arquivo (importação de planilhas)."""
    if not _enabled():
        return
    log_data = {"operation": operation, "file_path": file_path, "rows_processed": rows_processed, **kwargs}
    system_logger.info(f"FILE_{operation.upper()}: {log_data}")


def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Obtém um resumo dos logs recentes.

    Args:
        log_type: Tipo de log (chaves de ``LOG_FILES``)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string (None se o logging estiver desligado)
    """
    if not _enabled():
        return None

    log_file = LOG_FILES.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    for handler in logging.getLogger(f"bomcalc.{log_type}").handlers:
        handler.flush()

    try:
        with open(log_file, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
    except OSError as e:
        return f"Erro ao ler log {log_type}: {e}"
    return ''.join(all_lines[-lines:])
