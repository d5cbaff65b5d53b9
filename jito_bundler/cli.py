import asyncio
import base64
import binascii
import json
import logging
from typing import List, Optional

import typer

from .client import JitoBundleClient
from .config import Settings
from .endpoints import endpoints_for_regions
from .errors import JitoBundlerError

app = typer.Typer(help="Jito block engine bundle client")


def _settings() -> Settings:
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


def _client(settings: Settings, regions: Optional[List[str]] = None) -> JitoBundleClient:
    if regions:
        return JitoBundleClient(
            endpoints_for_regions(regions),
            timeout=settings.request_timeout,
            intervals=settings.intervals,
        )
    return JitoBundleClient.from_settings(settings)


def _run(coro):
    try:
        return asyncio.run(coro)
    except JitoBundlerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _load_transactions(data: str) -> list[bytes]:
    """Decode a JSON array of base64 transaction blobs."""
    try:
        blobs = json.loads(data)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid transactions file: {e}")
    if not isinstance(blobs, list) or not all(isinstance(b, str) for b in blobs):
        raise typer.BadParameter("Transactions file must hold a JSON array of base64 strings")
    try:
        return [base64.b64decode(b, validate=True) for b in blobs]
    except binascii.Error as e:
        raise typer.BadParameter(f"Invalid base64 tx bytes: {e}")


def endpoints(
    region: Optional[List[str]] = typer.Option(None, help="Region code: mainnet|amsterdam|frankfurt|ny|tokyo|slc"),
):
    """Show the bundle endpoints in fallback order."""
    client = _client(_settings(), region)
    if not client.urls:
        typer.echo("No block engine URLs configured (set JITO_BLOCK_ENGINE_URLS)", err=True)
        raise typer.Exit(code=1)
    for i, url in enumerate(client.urls, start=1):
        print(f"{i}. {url}")


def tip_accounts(
    region: Optional[List[str]] = typer.Option(None, help="Region code(s) to use instead of JITO_BLOCK_ENGINE_URLS"),
    limit: int = typer.Option(5, help="How many accounts to print"),
):
    """Fetch the tip accounts."""
    client = _client(_settings(), region)
    accounts = _run(client.get_tip_accounts())
    print(f"getTipAccounts: {len(accounts)} accounts (showing up to {limit})")
    for account in accounts[:limit]:
        print(f"  - {account}")


def send_bundle(
    txs_path: str = typer.Argument(..., help="Path to a JSON array of base64 signed transactions"),
    region: Optional[List[str]] = typer.Option(None, help="Region code(s) to use instead of JITO_BLOCK_ENGINE_URLS"),
    wait: float = typer.Option(2.0, help="Seconds to wait for landed signatures, 0 to skip"),
):
    """Submit a bundle of signed transactions."""
    settings = _settings()
    with open(txs_path, "r") as f:
        transactions = _load_transactions(f.read())

    async def run():
        client = _client(settings, region)
        bundle_id = await client.send_bundle(transactions)
        print(f"sendBundle OK: bundle_id={bundle_id}")

        fallback = None
        if settings.rpc_fallback_url:
            fallback = client.schedule_rpc_fallback(
                transactions[0], settings.rpc_fallback_url, settings.rpc_fallback_delay
            )

        if wait > 0:
            signatures = await client.wait_for_landed_signatures(bundle_id, timeout=wait)
            if signatures:
                print(f"bundle landed tx signatures: {signatures}")
            else:
                print(f"bundle signatures unknown (no landed sigs observed in {wait:g}s)")

        if fallback is not None:
            # asyncio.run cancels whatever is still pending when run() returns
            await fallback

    _run(run())


def status(
    bundle_ids: List[str] = typer.Argument(..., help="Bundle ids to query"),
    region: Optional[List[str]] = typer.Option(None, help="Region code(s) to use instead of JITO_BLOCK_ENGINE_URLS"),
):
    """Show bundle statuses."""
    client = _client(_settings(), region)
    statuses = _run(client.get_bundle_statuses(bundle_ids))
    if not statuses:
        print("no status reported")
    for st in statuses:
        landed = ", ".join(st.landed_signatures) or "-"
        print(f"{st.bundle_id or '?'}  slot={st.slot}  status={st.status}  landed={landed}")


def tip_floor(
    percentile: int = typer.Option(50, help="25|50|75|95|99"),
    ema: bool = typer.Option(False, help="Use the EMA-smoothed 50th percentile"),
    min_lamports: int = typer.Option(1_000, "--min", help="Lower bound in lamports"),
    max_lamports: int = typer.Option(1_000_000, "--max", help="Upper bound in lamports"),
    url: Optional[str] = typer.Option(None, help="Tip floor URL (default: JITO_TIP_FLOOR_URL)"),
):
    """Print a tip in lamports from the published tip floor."""
    settings = _settings()
    client = _client(settings)
    lamports = _run(
        client.get_tip_floor_lamports(
            url or settings.tip_floor_url, percentile, ema, min_lamports, max_lamports
        )
    )
    print(lamports)


app.command()(endpoints)
app.command("tip-accounts")(tip_accounts)
app.command("send-bundle")(send_bundle)
app.command()(status)
app.command("tip-floor")(tip_floor)

if __name__ == "__main__":
    app()
