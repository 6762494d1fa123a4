"""
Operator script for the certificate pipeline
Generate claims, correct a registration number or retry PDF conversion
without going through the API.

    python scripts/generate_certificates.py generate 12 13 14
    python scripts/generate_certificates.py registration 5 REG-00042
    python scripts/generate_certificates.py convert 5
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.database import connect_db, disconnect_db
from app.errors import CertificatePipelineError
from app.logging_config import setup_logging
from app.services.certificate_service import certificate_service
from app.services.generation_store import generation_store
from app.services.registration_service import registration_service


async def generate(claim_ids):
    outcomes = await certificate_service.generate_many(claim_ids)
    for outcome in outcomes:
        if outcome.success:
            result = outcome.result
            print(f"✅ Claim {outcome.claim_id}: {result.registration_number}")
            for warning in result.warnings:
                print(f"   ⚠️  {warning}")
        else:
            print(f"❌ Claim {outcome.claim_id}: {outcome.error}")


async def add_registration(generated_id, registration_number, performed_by):
    number = registration_service.accept(registration_number)
    if await generation_store.registration_number_in_use(number, exclude_id=generated_id):
        print(f"❌ Registration number {number} already exists!")
        return

    result = await certificate_service.add_registration_number(
        generated_id, number, performed_by=performed_by
    )
    print(f"✅ Certificate {generated_id} now carries {result.registration_number}")


async def convert(generated_id):
    record = await certificate_service.retry_conversion(generated_id)
    print(f"   Certificate PDF: {record.certificate_pdf_url or '(missing)'}")
    print(f"   Transcript PDF: {record.transcript_pdf_url or '(missing)'}")


async def main():
    parser = argparse.ArgumentParser(description="Certificate pipeline operations")
    commands = parser.add_subparsers(dest="command", required=True)

    gen = commands.add_parser("generate", help="Generate (or regenerate) claims")
    gen.add_argument("claim_ids", nargs="+", type=int)

    reg = commands.add_parser("registration", help="Set a registration number and rebuild documents")
    reg.add_argument("generated_id", type=int)
    reg.add_argument("registration_number")
    reg.add_argument("--performed-by", type=int, default=None)

    conv = commands.add_parser("convert", help="Retry PDF conversion")
    conv.add_argument("generated_id", type=int)

    args = parser.parse_args()

    setup_logging()
    await connect_db()
    try:
        if args.command == "generate":
            await generate(args.claim_ids)
        elif args.command == "registration":
            await add_registration(args.generated_id, args.registration_number, args.performed_by)
        else:
            await convert(args.generated_id)
    except CertificatePipelineError as e:
        print(f"❌ {e.message}")
        sys.exit(1)
    finally:
        await disconnect_db()


if __name__ == "__main__":
    asyncio.run(main())
