"""
Check stock - print the sellable catalog snapshot for a branch.

Usage:
    python scripts/check_stock.py --branch <branch_id> [--search term]
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import PosError
from domain.money import format_money
from domain.session import SessionContext
from repositories.catalog_repository import CatalogRepository
from repositories.client import get_supabase_client, session_from_env
from services.catalog_service import CatalogService


def check_stock(branch_id, search=""):
    """Print each sellable lot with its price, lot stock and product stock."""

    session = SessionContext(branch_id=branch_id) if branch_id else session_from_env()
    catalog = CatalogService(CatalogRepository(get_supabase_client()), session)
    snapshot = catalog.refresh()
    entries = snapshot.search(search) if search else snapshot.list()

    print("=" * 90)
    print(f"CATALOG FOR BRANCH {session.branch_id or '(all)'}")
    print("=" * 90)
    print(f"{'Product':<30} {'Lot':<14} {'Price':>10} {'Lot qty':>8} {'Stock':>8}  Expiry")
    print("-" * 90)
    for entry in entries:
        lot_qty = entry.lot_quantity if entry.lot_quantity is not None else "-"
        expiry = entry.expiry_date.isoformat() if entry.expiry_date else "-"
        print(
            f"{entry.display_name[:30]:<30} {entry.lot_code[:14]:<14} "
            f"{format_money(entry.unit_price):>10} {lot_qty:>8} {entry.remaining_quantity:>8}  {expiry}"
        )
    print("-" * 90)
    print(f"Lots: {len(entries)}   Products: {len({e.product_id for e in entries})}")


def main():
    parser = argparse.ArgumentParser(description="Print the POS catalog snapshot for a branch")
    parser.add_argument("--branch", help="Branch id (defaults to POS_BRANCH_ID)")
    parser.add_argument("--search", default="", help="Filter by name, barcode or lot code")
    args = parser.parse_args()

    try:
        check_stock(args.branch, args.search)
    except PosError as e:
        print(f"Failed to load catalog: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
