#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from dental_saas.core.database import SessionLocal  # noqa: E402
from dental_saas.core.logging_setup import configure_logging  # noqa: E402
from dental_saas.services.payment_gateway import PaymentGatewayError, StripeGateway  # noqa: E402
from dental_saas.services.subscriptions import reconcile_subscriptions  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sincroniza o espelho local com as assinaturas do Stripe."
    )
    parser.add_argument(
        "--status",
        default="all",
        help="Filtro de status do Stripe (ex: active, past_due, all)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging()

    db = SessionLocal()
    try:
        summary = reconcile_subscriptions(db, StripeGateway(), status=args.status)
    except PaymentGatewayError as exc:
        print(f"Falha ao listar assinaturas: {exc}")
        return 1
    finally:
        db.close()

    print(
        f"Sincronizadas: {summary['synced']} | Ignoradas: {summary['skipped']} | Falhas: {summary['failed']}"
    )
    return 0 if summary["failed"] == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
