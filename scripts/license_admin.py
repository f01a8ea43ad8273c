#!/usr/bin/env python3
"""
License administration utility.

Commands:
    status       Resolve the current Pro entitlement and print it
    generate     Write a signed license.json
    apply        Upgrade every organization to PRO from a license.json
    deactivate   Delete the activation lock file (destructive)
"""

import argparse
import json
import logging
import os
import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import LICENSE_SECRET
from db.licensing.descriptor import LicenseDescriptorReader, PROJECT_ROOT, LICENSE_FILE_NAME, is_pro_tier
from db.licensing.license_manager import LicenseManager
from db.licensing.license_token import encode_license_key
from db.licensing.timeutil import utcnow, isoformat_z
from db.repositories.unit_of_work import get_unit_of_work

logger = logging.getLogger(__name__)

LIFETIME_HORIZON = timedelta(days=100 * 365)


def build_license_document(
    product: str,
    tier: str,
    secret: str,
    license_id: Optional[str] = None,
    validity: Optional[str] = None,
    days: Optional[int] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Create a license.json document with a signed licenseKey."""
    now = now or utcnow()
    license_id = license_id or f"LIC-{uuid.uuid4().hex[:12].upper()}"
    payload = {
        'plan': 'PRO' if is_pro_tier(tier) else tier,
        'tier': tier,
        'licenseId': license_id,
        'issuedAt': isoformat_z(now),
        'version': '1.0',
    }
    if days:
        payload['expiresAt'] = isoformat_z(now + timedelta(days=days))

    return {
        'product': product,
        'tier': tier,
        'id': license_id,
        'validity': validity or ('Perpetual' if not days else f"{days} days"),
        'issuedAt': isoformat_z(now),
        'licenseKey': encode_license_key(payload, secret),
    }


def apply_license(
    reader: LicenseDescriptorReader,
    uow_factory: Callable = get_unit_of_work,
    now: Optional[datetime] = None
) -> Optional[int]:
    """
    Move every organization to PRO based on the license.json the reader finds.

    Returns:
        Number of organizations updated, or None if no usable Pro license was found
    """
    descriptor = reader.load()
    if descriptor is None:
        logger.info("[License] No usable license.json found")
        return None

    outcome = reader.validate(descriptor)
    if not outcome.accepted:
        logger.info(f"[License] License rejected ({outcome.reason})")
        return None

    if not descriptor.is_pro_tier:
        logger.info("[License] License is not a Pro license")
        return None

    logger.info(
        f"[License] Found valid Pro license: {descriptor.id or 'N/A'} "
        f"(product={descriptor.product}, tier={descriptor.tier}, validity={descriptor.validity or 'N/A'})"
    )

    now = now or utcnow()
    lifetime = descriptor.validity == 'Perpetual' or descriptor.tier == 'PRO_LIFETIME'
    expiry = now + LIFETIME_HORIZON if lifetime else None

    with uow_factory() as uow:
        organizations = uow.organizations.apply_license_to_all(
            expiry=expiry,
            payment_reference=f"LICENSE-{descriptor.id or 'AUTO'}"
        )
        count = len(organizations)

    logger.info(f"[License] ✅ Activated Pro features for {count} organization(s)")
    return count


def cmd_status(args) -> int:
    manager = LicenseManager(LICENSE_SECRET)
    print(json.dumps(manager.get_license_status(refresh=True), indent=2))
    return 0


def cmd_generate(args) -> int:
    output = Path(args.output) if args.output else PROJECT_ROOT / 'License' / LICENSE_FILE_NAME
    if output.exists() and not args.force:
        logger.error(f"❌ {output} already exists (use --force to overwrite)")
        return 1

    document = build_license_document(
        product=args.product,
        tier=args.tier,
        secret=LICENSE_SECRET,
        license_id=args.id,
        validity=args.validity,
        days=args.days
    )
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(document, indent=2), encoding='utf-8')
    logger.info(f"✅ Wrote {document['tier']} license {document['id']} to {output}")
    return 0


def cmd_apply(args) -> int:
    paths = [Path(args.license)] if args.license else None
    reader = LicenseDescriptorReader(LICENSE_SECRET, candidate_paths=paths)
    return 0 if apply_license(reader) is not None else 1


def cmd_deactivate(args) -> int:
    if not args.yes:
        logger.error("❌ Refusing to delete the lock file without --yes. Pro must be re-activated afterwards.")
        return 1

    manager = LicenseManager(LICENSE_SECRET)
    if manager.lock_store.delete():
        logger.info("Lock file removed; Pro features from activation are disabled")
    else:
        logger.info("No lock file to remove")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="OpenDesk license administration")
    subparsers = parser.add_subparsers(dest='command', required=True)

    status = subparsers.add_parser('status', help='Show the resolved license state')
    status.set_defaults(func=cmd_status)

    generate = subparsers.add_parser('generate', help='Write a signed license.json')
    generate.add_argument('--product', default='OpenDesk')
    generate.add_argument('--tier', default='PRO_LIFETIME', help='PRO, PRO_LIFETIME or another tier name')
    generate.add_argument('--id', help='License id (random if omitted)')
    generate.add_argument('--validity', help="Free-form validity label, e.g. 'Perpetual'")
    generate.add_argument('--days', type=int, help='Expire the key this many days from now')
    generate.add_argument('--output', help='Destination path (default: <project>/License/license.json)')
    generate.add_argument('--force', action='store_true', help='Overwrite an existing file')
    generate.set_defaults(func=cmd_generate)

    apply = subparsers.add_parser('apply', help='Upgrade all organizations from license.json')
    apply.add_argument('--license', help='Path to license.json (default: standard locations)')
    apply.set_defaults(func=cmd_apply)

    deactivate = subparsers.add_parser('deactivate', help='Delete the activation lock file')
    deactivate.add_argument('--yes', action='store_true', help='Confirm the destructive deletion')
    deactivate.set_defaults(func=cmd_deactivate)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except Exception as e:
        logger.error(f"❌ {args.command} failed: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
