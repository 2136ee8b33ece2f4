# bomcalc/adapters/cli.py
"""
CLI do cálculo de materiais (Typer).

Comandos principais:
- migrate                          -> aplica migrações
- params set/get/show              -> gerencia parâmetros globais
- import-catalog <xlsx>            -> importa catálogo (materiais, fórmulas, produtos...)
- import-order <pedido> <xlsx>     -> importa as linhas de um pedido
- calc <pedido>                    -> calculadora de materiais (explosão da BOM)
- allocate <pedido>                -> resumo de alocação e filas de remediação
- normalize <json>                 -> resumo a partir de uma resposta de alocação salva
- resolve <pedido> --action K=A    -> sessão de remediação (confirmar ou adiar)
- logs [tipo]                      -> últimas linhas de um log
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bomcalc.config import DB_PATH, DEFAULTS
from bomcalc.domain.errors import BomCalcError
from bomcalc.domain.models import AllocationSummary, RemediationQueue, RequirementsResult
from bomcalc.domain.policies import line_status
from bomcalc.infra.logger import LOG_FILES, get_log_summary
from bomcalc.infra.migrations import apply_migrations
from bomcalc.infra.repositories import AlertRepo, ParamsRepo, RemediationRepo
from bomcalc.usecases.allocation_summary import (
    normalize_allocation_response,
    remediation_queues,
    run_allocation,
)
from bomcalc.usecases.import_data import run_import_catalog, run_import_order
from bomcalc.usecases.materials_calculator import run_materials_calculator
from bomcalc.usecases.shortfall_session import RemediationSession


app = typer.Typer(help="BOM: cálculo de materiais e resolução de faltas")
console = Console()

_STATUS_STYLE = {
    "allocated": "green",
    "partial": "yellow",
    "backordered": "red",
    "pending": "dim",
}


# -----------------------
# util
# -----------------------

def _print_json(obj) -> None:
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _fmt(v: Any) -> str:
    if isinstance(v, float):
        return f"{v:,.4f}".rstrip("0").rstrip(".")
    if v is None:
        return "-"
    return str(getattr(v, "value", v))


def _display_table(data: List[Dict[str, Any]], title: str = "Resultado") -> None:
    """Exibe uma lista de dicts como tabela Rich."""
    if not data:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return
    table = Table(title=title, box=box.ROUNDED)
    for column in data[0].keys():
        if column.endswith("_qty") or column in {"quantity", "shortfall"}:
            table.add_column(column, justify="right", style="cyan")
        elif column == "status":
            table.add_column(column, justify="center")
        else:
            table.add_column(column)
    for row in data:
        cells = []
        for k, v in row.items():
            cell = _fmt(v)
            if k == "status":
                cell = f"[{_STATUS_STYLE.get(cell, 'white')}]{cell}[/]"
            cells.append(cell)
        table.add_row(*cells)
    console.print(table)


def _display_requirements(res: RequirementsResult) -> None:
    for title, bucket in (("Matéria-prima", res.raw), ("Embalagem", res.packaging), ("Não classificado", res.unclassified)):
        if not bucket and title == "Não classificado":
            continue
        _display_table(
            [
                {
                    "material": r.material_name,
                    "required_qty": r.required_qty,
                    "uom": r.uom,
                    "client": "sim" if r.is_client_material else "",
                }
                for r in bucket
            ],
            title=f"{title} - pedido {res.order_id}",
        )
    if res.missing_formulas:
        _display_table(
            [{"product": m.product_name, "quantity": m.quantity, "reason": m.reason} for m in res.missing_formulas],
            title="Produtos sem fórmula",
        )


def _display_summary(summary: AllocationSummary) -> None:
    _display_table(
        [
            {
                "subject": ln.subject,
                "required_qty": ln.required_qty,
                "allocated_qty": ln.allocated_qty,
                "shortfall_qty": ln.shortfall_qty,
                "client": "sim" if ln.is_client_material else "",
                "suggestion": ln.suggestion,
                "status": line_status(ln.required_qty, ln.allocated_qty, ln.shortfall_qty),
            }
            for ln in summary.lines
        ],
        title=f"Alocação - pedido {summary.order_id}",
    )
    style = _STATUS_STYLE.get(summary.status.value, "white")
    console.print(
        f"Status: [{style}]{summary.status.value}[/]  "
        f"requerido={_fmt(summary.total_required)}  "
        f"alocado={_fmt(summary.total_allocated)}  "
        f"falta={_fmt(summary.total_shortfall)}"
    )
    queues = remediation_queues(summary)
    client = queues[RemediationQueue.CLIENT_REQUEST]
    ops = queues[RemediationQueue.PURCHASE_REQUISITION]
    if client:
        console.print(f"[magenta]Solicitar ao cliente:[/] {', '.join(ln.subject for ln in client)}")
    if ops:
        console.print(f"[yellow]Requisição de compra:[/] {', '.join(ln.subject for ln in ops)}")


def _fail(e: BomCalcError) -> None:
    console.print(f"[red]Erro ({e.code}):[/] {e}")
    raise typer.Exit(code=1)


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Aplica migrações do schema."""
    apply_migrations(db_path)
    typer.echo(f">> Migrações aplicadas em: {db_path}")


params_app = typer.Typer(help="Gerenciar parâmetros globais.")
app.add_typer(params_app, name="params")


@params_app.command("set")
def cmd_params_set(
    unknown_category_policy: Optional[str] = typer.Option(None, help="raw | unclassified"),
    bundle_types: Optional[str] = typer.Option(None, help="Tipos de embalagem que exigem material completo (ex.: kit,bundle)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Define parâmetros globais (apenas os informados são alterados)."""
    items: List[tuple] = []
    if unknown_category_policy is not None:
        if unknown_category_policy not in {"raw", "unclassified"}:
            typer.echo("unknown_category_policy deve ser 'raw' ou 'unclassified'.")
            raise typer.Exit(code=1)
        items.append(("unknown_category_policy", unknown_category_policy))
    if bundle_types is not None:
        items.append(("bundle_packaging_types", bundle_types))
    if not items:
        typer.echo("Nada a alterar. Informe pelo menos um parâmetro.")
        raise typer.Exit(code=1)
    apply_migrations(db_path)
    ParamsRepo(db_path).set_many(items)
    typer.echo(">> Parâmetros atualizados.")


@params_app.command("get")
def cmd_params_get(
    chave: str = typer.Argument(..., help="Ex.: unknown_category_policy | bundle_packaging_types"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Mostra um parâmetro específico."""
    val = ParamsRepo(db_path).get(chave)
    typer.echo("(None)" if val is None else val)


@params_app.command("show")
def cmd_params_show(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Exibe os parâmetros efetivos (com fallback para defaults)."""
    repo = ParamsRepo(db_path)
    rows = [
        {
            "param": "unknown_category_policy",
            "value": repo.get("unknown_category_policy", DEFAULTS.unknown_category_policy),
            "default": DEFAULTS.unknown_category_policy,
        },
        {
            "param": "bundle_packaging_types",
            "value": repo.get("bundle_packaging_types", ",".join(DEFAULTS.bundle_packaging_types)),
            "default": ",".join(DEFAULTS.bundle_packaging_types),
        },
    ]
    _display_table(rows, title="Parâmetros do Sistema")
    console.print(f"[dim]Banco de dados: {db_path}[/dim]")


# -----------------------
# importação
# -----------------------

@app.command("import-catalog")
def cmd_import_catalog(
    path: str = typer.Argument(..., help="XLSX com abas materials/formulas/formula_items/products/availability"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Importa o catálogo a partir de um XLSX."""
    info = run_import_catalog(path, db_path=db_path)
    _display_table([info], title="Importação do Catálogo")


@app.command("import-order")
def cmd_import_order(
    order_id: str = typer.Argument(..., help="Identificador do pedido/lote"),
    path: str = typer.Argument(..., help="XLSX com as linhas do pedido"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Importa (regrava) as linhas de um pedido a partir de um XLSX."""
    info = run_import_order(order_id, path, db_path=db_path)
    _display_table([info], title="Importação do Pedido")


# -----------------------
# cálculo e alocação
# -----------------------

@app.command("calc")
def cmd_calc(
    order_id: str = typer.Argument(..., help="Identificador do pedido/lote"),
    as_json: bool = typer.Option(False, "--json", help="Saída em JSON"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Explode as fórmulas do pedido e agrega os requisitos de materiais."""
    try:
        res = run_materials_calculator(order_id, db_path=db_path)
    except BomCalcError as e:
        _fail(e)
    if as_json:
        _print_json(res.to_dict())
        return
    _display_requirements(res)


@app.command("allocate")
def cmd_allocate(
    order_id: str = typer.Argument(..., help="Identificador do pedido/lote"),
    as_json: bool = typer.Option(False, "--json", help="Saída em JSON"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Resumo de alocação contra o snapshot de disponibilidade."""
    try:
        out = run_allocation(order_id, db_path=db_path)
    except BomCalcError as e:
        _fail(e)
    summary: AllocationSummary = out["summary"]
    if as_json:
        _print_json({
            "summary": summary.to_dict(),
            "blocked": out["blocked"],
            "fully_backordered": out["fully_backordered"],
        })
        return
    _display_summary(summary)
    for name in out["blocked"]:
        console.print(f"[red]Kit/bundle bloqueado para produção:[/] {name}")
    if out["fully_backordered"]:
        console.print("[yellow]Nenhum material disponível para este pedido.[/]")


@app.command("normalize")
def cmd_normalize(
    path: str = typer.Argument(..., help="JSON com a resposta do procedimento de alocação"),
    order_id: str = typer.Option("", "--order-id", help="Pedido (se ausente na resposta)"),
    as_json: bool = typer.Option(False, "--json", help="Saída em JSON"),
):
    """Normaliza uma resposta de alocação salva em arquivo."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    summary = normalize_allocation_response(raw, order_id)
    if as_json:
        _print_json(summary.to_dict())
        return
    _display_summary(summary)


@app.command("resolve")
def cmd_resolve(
    order_id: str = typer.Argument(..., help="Identificador do pedido/lote"),
    action: List[str] = typer.Option([], "--action", "-a", help="CHAVE=production|purchase|skip (repetível)"),
    defer: bool = typer.Option(False, "--defer", help="Lembrar depois: grava alertas e não dispara nada"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Sessão de remediação das faltas do pedido (confirmar ou adiar)."""
    try:
        out = run_allocation(order_id, db_path=db_path)
        session = RemediationSession(order_id, out["summary"], RemediationRepo(db_path), AlertRepo(db_path))
        if not session.lines:
            typer.echo(">> Nenhuma falta a resolver.")
            return
        _display_table(
            [
                {
                    "key": sl.key,
                    "subject": sl.line.subject,
                    "shortfall_qty": sl.line.shortfall_qty,
                    "client": "sim" if sl.line.is_client_material else "",
                    "action": sl.action,
                }
                for sl in session.lines
            ],
            title=f"Faltas - pedido {order_id}",
        )
        if defer:
            n = session.defer()
            typer.echo(f">> {n} alerta(s) gravado(s) para revisão.")
            return
        for item in action:
            key, sep, value = item.partition("=")
            if not sep:
                typer.echo(f"Ação inválida: {item!r} (use CHAVE=ACAO)")
                raise typer.Exit(code=1)
            try:
                session.choose(key.strip(), value.strip())
            except (KeyError, ValueError) as e:
                typer.echo(f"Ação inválida: {item!r} ({e})")
                raise typer.Exit(code=1)
        outcome = session.confirm()
    except BomCalcError as e:
        _fail(e)
    _display_table(
        [{"trigger": k, "result": v} for k, v in outcome.items()],
        title=f"Remediação - pedido {order_id}",
    )


@app.command("logs")
def cmd_logs(
    log_type: str = typer.Argument("transactions", help="transactions | calculations | allocations | remediation | database | system"),
    lines: int = typer.Option(50, "--lines", "-n", help="Número de linhas"),
):
    """Mostra as últimas linhas de um log (requer BOMCALC_LOGGING=1)."""
    if log_type not in LOG_FILES:
        typer.echo(f"Log desconhecido: {log_type}. Opções: {', '.join(LOG_FILES)}")
        raise typer.Exit(code=1)
    content = get_log_summary(log_type, lines=lines)
    if content is None:
        typer.echo("Logging desabilitado. Defina BOMCALC_LOGGING=1.")
        return
    console.print(Panel(content.rstrip() or "(vazio)", title=f"Log: {log_type}", border_style="blue"))


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
