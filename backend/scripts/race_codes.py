"""CLI helper printing the race code of every known boat class for a category.

Useful for checking generated codes against the federation's published code
lists, for example lightweight boats in gendered junior categories:

    python scripts/race_codes.py J18M --gender men --title "Junior 18 Men"
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Sequence

from rowing_core import CategoryDescriptor, DataStore, generate_race_code


def _format_rows(category: CategoryDescriptor, store: DataStore) -> List[str]:
    lines = [f"Category {category.abbreviation or '-'} ({category.gender})"]
    for boat_class in store.load_boat_classes():
        code = generate_race_code(category, boat_class)
        lines.append(
            f"  {boat_class.code.ljust(8)}{boat_class.weight_class.ljust(13)}"
            f"{boat_class.discipline.ljust(9)}{code}"
        )
    return lines


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("abbreviation", help="Category abbreviation, e.g. SM or J18W")
    parser.add_argument("--gender", choices=["men", "women", "mixed"], default="mixed")
    parser.add_argument("--title", default="", help="English category title")
    args = parser.parse_args(argv)

    category = CategoryDescriptor(
        abbreviation=args.abbreviation.strip(),
        gender=args.gender,
        titles={"en": args.title} if args.title else {},
    )

    try:
        lines = _format_rows(category, DataStore())
    except FileNotFoundError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print("\n".join(lines))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
