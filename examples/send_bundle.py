#!/usr/bin/env python3
"""
Example: build a transfer plus a Jito tip transaction, submit them as one bundle
and wait for the landed signatures.

Needs JITO_BLOCK_ENGINE_URLS set (comma-separated block engine hosts).
"""

import asyncio
import getpass
import os

import base58
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from jito_bundler.client import JitoBundleClient
from jito_bundler.config import Settings

RPC_URL = os.environ.get("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")


def setup_wallet() -> Keypair:
    private_key_input = getpass.getpass("Enter your wallet private key (base58 encoded): ").strip()

    if not private_key_input:
        raise ValueError("Private key is required")

    try:
        return Keypair.from_bytes(base58.b58decode(private_key_input))
    except Exception as e:
        raise ValueError(f"Invalid private key: {e}")


def build_transfer(payer: Keypair, to: Pubkey, lamports: int, blockhash) -> bytes:
    ix = transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=to, lamports=lamports))
    message = Message([ix], payer.pubkey())
    return bytes(Transaction([payer], message, blockhash))


async def main():
    settings = Settings.from_env()
    client = JitoBundleClient.from_settings(settings)
    print("Bundle endpoints:")
    for url in client.urls:
        print(f"  - {url}")

    keypair = setup_wallet()
    to_address = Pubkey.from_string(input("Transfer destination: ").strip())

    tip_accounts = await client.get_tip_accounts()
    tip_lamports = await client.get_tip_floor_lamports(
        settings.tip_floor_url, percentile=50, use_ema=True, min_lamports=1_000, max_lamports=100_000
    )
    print(f"Tip: {tip_lamports} lamports to {tip_accounts[0]}")

    rpc = AsyncClient(RPC_URL)
    try:
        blockhash = (await rpc.get_latest_blockhash()).value.blockhash
    finally:
        await rpc.close()

    # Bundle: transfer -> tip, both compiled with the same blockhash
    bundle = [
        build_transfer(keypair, to_address, 1_000, blockhash),
        build_transfer(keypair, Pubkey.from_string(tip_accounts[0]), tip_lamports, blockhash),
    ]

    bundle_id = await client.send_bundle(bundle)
    print(f"sendBundle OK: bundle_id={bundle_id}")

    signatures = await client.wait_for_landed_signatures(bundle_id, timeout=5.0)
    if signatures:
        for sig in signatures:
            print(f"Explorer: https://explorer.solana.com/tx/{sig}")
    else:
        print("bundle signatures unknown (no landed sigs observed in 5s)")


if __name__ == "__main__":
    asyncio.run(main())
