import argparse
import logging

from festdraw.config import Settings
from festdraw.session import DEFAULT_PRIZES
from festdraw.workflows import build_store, seed_remote


def main() -> None:
    """Seed the configured store with the default prize set."""
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="replace an existing lottery document",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    settings = Settings.from_env()
    store = build_store(settings)
    aggregate = seed_remote(store, DEFAULT_PRIZES, overwrite=args.overwrite)
    store.prime_cache(aggregate)

    print(f"Document '{settings.doc_key}' holds {len(aggregate.prizes)} prizes:")
    for prize in aggregate.prizes:
        print(f"  {prize.name}: {prize.remaining_count}/{prize.total_count}")


if __name__ == "__main__":
    main()
