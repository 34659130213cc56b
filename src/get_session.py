"""Interactive Telegram login.

Creates the pre-authorized session the scraper relies on and prints it as a
StringSession so it can be stored in SESSION_STRING on headless hosts.
"""

import asyncio
import logging
import os
from getpass import getpass
from typing import Optional

import qrcode
from dotenv import load_dotenv
from telethon import TelegramClient, errors
from telethon.sessions import StringSession

from client import build_client

LOGGER = logging.getLogger(__name__)

QR_ATTEMPTS = 3
QR_TIMEOUT_SECONDS = 60


def _print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def _two_factor_password() -> str:
    return os.getenv("2FA") or getpass("2FA password: ")


async def _login_with_qr(client: TelegramClient) -> None:
    qr_login = await client.qr_login()
    for attempt in range(1, QR_ATTEMPTS + 1):
        print(f"\nScan with Telegram > Settings > Devices ({attempt}/{QR_ATTEMPTS}):")
        _print_qr(qr_login.url)
        try:
            await qr_login.wait(timeout=QR_TIMEOUT_SECONDS)
            return
        except asyncio.TimeoutError:
            # Tokens are short-lived; ask Telegram for a fresh one.
            await qr_login.recreate()
    raise SystemExit("QR code was not scanned in time")


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


def _choose_method(preset: Optional[str]) -> str:
    method = (preset or os.getenv("LOGIN_METHOD") or "").strip().lower()
    options = {"1": "qr", "2": "phone", "qr": "qr", "phone": "phone"}
    while method not in options:
        print("\nLogin methods:\n[1] QR code\n[2] Phone code\n[3] Exit")
        method = input("jobscope > ").strip().lower()
        if method == "3":
            raise SystemExit(0)
    return options[method]


async def ensure_authorized(client: TelegramClient, method: Optional[str] = None) -> None:
    if await client.is_user_authorized():
        LOGGER.info("Session already authorized")
        return

    login_flow = _login_with_qr if _choose_method(method) == "qr" else _login_with_phone
    try:
        await login_flow(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())


async def login(method: Optional[str] = None) -> str:
    """Authorize the scraping account and return its StringSession."""

    load_dotenv()
    client = build_client()
    await client.connect()
    try:
        await ensure_authorized(client, method)
        me = await client.get_me()
        LOGGER.info("Logged in as: %s", me.username or me.first_name)
        session_string = StringSession.save(client.session)
    finally:
        await client.disconnect()

    print("\nAdd this line to .env to reuse the session without a .session file:")
    print("SESSION_STRING=" + session_string)
    return session_string


if __name__ == "__main__":
    asyncio.run(login())
