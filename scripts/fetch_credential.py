#!/usr/bin/env python3
"""
Запросить API-ключ у backend напрямую (проверка API_URL / SUPER_API_KEY без бота).
Запуск из корня проекта: python -m scripts.fetch_credential 42
или: PYTHONPATH=. python scripts/fetch_credential.py 42
"""
import argparse
import asyncio
import os
import sys

# корень проекта в PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from keybot.core.config import ConfigError, load_settings
from keybot.services.credentials.service import BrokerError, CredentialBroker


async def fetch(user_id: str) -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Конфигурация некорректна: {e}")
        return 2
    broker = CredentialBroker.from_settings(settings)
    try:
        credential = await broker.fetch_credential(user_id)
    except BrokerError as e:
        print(f"Ошибка backend ({e.failure.value}): {e}")
        return 1
    finally:
        await broker.aclose()
    print(credential)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Fetch a credential from the backend")
    parser.add_argument("user_id", nargs="?", default="1", help="user_id for the request (default: 1)")
    args = parser.parse_args()
    sys.exit(asyncio.run(fetch(args.user_id)))


if __name__ == "__main__":
    main()
