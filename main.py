import typer
from rich.console import Console
from rich.table import Table

from o365license.auth import acquire_token_client_credentials
from o365license.catalog import DEFAULT_INITIAL_DELAY, LicenseCatalog, bootstrap_catalog
from o365license.directory import GraphDirectory
from o365license.errors import CatalogUnavailableError, DirectoryError, ValidationError
from o365license.graph_client import DEFAULT_TIMEOUT, GraphClient
from o365license.log import configure_logging
from o365license.models import DEFAULT_USAGE_LOCATION, OperationResult, Outcome
from o365license.validation import validate_upn
from o365license import operations


app = typer.Typer(help="Управление лицензиями Office 365 через Microsoft Graph")
console = Console()
err_console = Console(stderr=True)


def build_directory(
    tenant_id: str,
    client_id: str,
    client_secret: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> GraphDirectory:
    """
    Получаем токен и создаём GraphDirectory.
    """
    token = acquire_token_client_credentials(
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )
    return GraphDirectory(GraphClient(access_token=token, timeout=timeout))


def load_catalog(
    tenant_id: str,
    client_id: str,
    client_secret: str,
    timeout: float,
    retries: int,
    backoff: float,
):
    """
    Каталог SKU тенанта + клиент, которым он получен.
    При каждой неудачной попытке заново берём токен.
    """
    try:
        return bootstrap_catalog(
            lambda: build_directory(tenant_id, client_id, client_secret, timeout),
            max_attempts=retries,
            initial_delay=backoff,
        )
    except CatalogUnavailableError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


def check_upn(upn: str) -> None:
    """
    UPN проверяем до получения токена и каталога SKU.
    """
    try:
        validate_upn(upn)
    except ValidationError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)


def print_result(result: OperationResult) -> None:
    styles = {
        Outcome.ASSIGNED: "bold green",
        Outcome.REMOVED: "bold green",
        Outcome.ALREADY_ASSIGNED: "yellow",
        Outcome.NOT_ASSIGNED: "yellow",
        Outcome.UNLICENSED: "yellow",
        Outcome.NOT_FOUND: "red",
        Outcome.FAILED: "red",
    }
    style = styles[result.outcome]
    console.print(f"[{style}]{result.message}[/{style}]")
    for error in result.errors:
        console.print(f"[red]Ошибка:[/red] {error}")

    if not result.ok:
        raise typer.Exit(code=1)


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar="O365_LOG_LEVEL",
        help="Уровень логирования (DEBUG, INFO, WARNING, ERROR).",
    ),
):
    configure_logging(log_level)


# --- LICENSES --- #


@app.command("get-license")
def get_license(
    upn: str = typer.Option(..., "--upn", help="UPN пользователя (user@contoso.com)."),
    tenant_id: str = typer.Option(..., "--tenant-id", envvar="GRAPH_TENANT_ID"),
    client_id: str = typer.Option(..., "--client-id", envvar="GRAPH_CLIENT_ID"),
    client_secret: str = typer.Option(
        ...,
        "--client-secret",
        prompt=True,
        hide_input=True,
        envvar="GRAPH_CLIENT_SECRET",
    ),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", envvar="GRAPH_TIMEOUT"),
):
    """
    Лицензии пользователя через ';', либо Unlicensed / O365 Account Not Found.
    """
    check_upn(upn)

    try:
        directory = build_directory(tenant_id, client_id, client_secret, timeout)
        result = operations.get_license(directory, upn)
    except DirectoryError as e:
        err_console.print("[red]Ошибка при запросе к Graph[/red]")
        err_console.print(str(e))
        raise typer.Exit(code=1)

    console.print(result, highlight=False, markup=False)


@app.command("add-license")
def add_license(
    upn: str = typer.Option(..., "--upn", help="UPN пользователя."),
    license_id: str = typer.Option(
        ...,
        "--license",
        help="Лицензия в формате tenant:SKU, например contoso:ENTERPRISEPACK.",
    ),
    location: str = typer.Option(
        DEFAULT_USAGE_LOCATION,
        "--location",
        help="usageLocation (двухбуквенный код страны).",
    ),
    tenant_id: str = typer.Option(..., "--tenant-id", envvar="GRAPH_TENANT_ID"),
    client_id: str = typer.Option(..., "--client-id", envvar="GRAPH_CLIENT_ID"),
    client_secret: str = typer.Option(
        ...,
        "--client-secret",
        prompt=True,
        hide_input=True,
        envvar="GRAPH_CLIENT_SECRET",
    ),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", envvar="GRAPH_TIMEOUT"),
    retries: int = typer.Option(
        0,
        "--catalog-retries",
        min=0,
        envvar="O365_CATALOG_RETRIES",
        help="Сколько раз пробовать получить SKU тенанта (0 = без ограничения).",
    ),
    backoff: float = typer.Option(
        DEFAULT_INITIAL_DELAY,
        "--catalog-backoff",
        min=0,
        envvar="O365_CATALOG_BACKOFF",
        help="Первая пауза между попытками, сек. Дальше удваивается до 60 сек.",
    ),
):
    """
    Назначить лицензию пользователю.
    Пример:
      python main.py add-license --upn user1@contoso.com --license contoso:ENTERPRISEPACK
    """
    check_upn(upn)
    console.rule(f"[bold]Назначение лицензии {upn}[/bold]")
    catalog, directory = load_catalog(tenant_id, client_id, client_secret, timeout, retries, backoff)

    try:
        result = operations.add_license(directory, catalog, upn, license_id, location)
    except ValidationError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)

    print_result(result)


@app.command("remove-license")
def remove_license(
    upn: str = typer.Option(..., "--upn", help="UPN пользователя."),
    license_id: str = typer.Option(..., "--license", help="Лицензия в формате tenant:SKU."),
    tenant_id: str = typer.Option(..., "--tenant-id", envvar="GRAPH_TENANT_ID"),
    client_id: str = typer.Option(..., "--client-id", envvar="GRAPH_CLIENT_ID"),
    client_secret: str = typer.Option(
        ...,
        "--client-secret",
        prompt=True,
        hide_input=True,
        envvar="GRAPH_CLIENT_SECRET",
    ),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", envvar="GRAPH_TIMEOUT"),
    retries: int = typer.Option(
        0,
        "--catalog-retries",
        min=0,
        envvar="O365_CATALOG_RETRIES",
        help="Сколько раз пробовать получить SKU тенанта (0 = без ограничения).",
    ),
    backoff: float = typer.Option(
        DEFAULT_INITIAL_DELAY,
        "--catalog-backoff",
        min=0,
        envvar="O365_CATALOG_BACKOFF",
        help="Первая пауза между попытками, сек. Дальше удваивается до 60 сек.",
    ),
):
    """
    Снять лицензию с пользователя.
    Для замены лицензии: сначала add-license новой, затем remove-license старой.
    """
    check_upn(upn)
    console.rule(f"[bold]Снятие лицензии {upn}[/bold]")
    catalog, directory = load_catalog(tenant_id, client_id, client_secret, timeout, retries, backoff)

    try:
        result = operations.remove_license(directory, catalog, upn, license_id)
    except ValidationError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)

    print_result(result)


@app.command("skus")
def skus(
    tenant_id: str = typer.Option(..., "--tenant-id", envvar="GRAPH_TENANT_ID"),
    client_id: str = typer.Option(..., "--client-id", envvar="GRAPH_CLIENT_ID"),
    client_secret: str = typer.Option(
        ...,
        "--client-secret",
        prompt=True,
        hide_input=True,
        envvar="GRAPH_CLIENT_SECRET",
    ),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", envvar="GRAPH_TIMEOUT"),
    retries: int = typer.Option(
        0,
        "--catalog-retries",
        min=0,
        envvar="O365_CATALOG_RETRIES",
        help="Сколько раз пробовать получить SKU тенанта (0 = без ограничения).",
    ),
    backoff: float = typer.Option(
        DEFAULT_INITIAL_DELAY,
        "--catalog-backoff",
        min=0,
        envvar="O365_CATALOG_BACKOFF",
        help="Первая пауза между попытками, сек. Дальше удваивается до 60 сек.",
    ),
):
    """
    Показать лицензии (SKU) тенанта, допустимые для --license.
    """
    console.rule("[bold]Subscribed SKUs[/bold]")
    catalog, directory = load_catalog(tenant_id, client_id, client_secret, timeout, retries, backoff)
    print_catalog(catalog, directory)


def print_catalog(catalog: LicenseCatalog, directory: GraphDirectory) -> None:
    by_part = {s.get("skuPartNumber"): s for s in getattr(directory, "skus", [])}

    table = Table(show_header=True, header_style="bold green")
    table.add_column("Index", style="dim", width=6)
    table.add_column("License", overflow="fold")
    table.add_column("SKU ID", overflow="fold")
    table.add_column("Consumed", overflow="fold")
    table.add_column("Total", overflow="fold")

    for idx, license_id in enumerate(catalog, start=1):
        s = by_part.get(license_id.split(":", 1)[-1]) or {}
        prepaid = s.get("prepaidUnits") or {}
        total = (
            prepaid.get("enabled", 0)
            + prepaid.get("suspended", 0)
            + prepaid.get("warning", 0)
        )
        table.add_row(
            str(idx),
            license_id,
            str(s.get("skuId", "")),
            str(s.get("consumedUnits", 0)),
            str(total),
        )

    console.print(table)


if __name__ == "__main__":
    app()
