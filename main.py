import logging
import sys

from portfolio_optimizer.data_loader import DataLoader
from portfolio_optimizer.exceptions import AllocationIntegrityError, InvalidAssetError
from portfolio_optimizer.portfolio_engine import optimize_all_portfolios
from portfolio_optimizer.rationale_engine import RationaleEngine


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    verbose = "-v" in args
    paths = [a for a in args if a != "-v"]

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    loader = DataLoader(paths[0]) if paths else DataLoader()

    try:
        assets = loader.load_assets()
        result = optimize_all_portfolios(assets)
    except (FileNotFoundError, InvalidAssetError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2
    except AllocationIntegrityError:
        print("Cannot compute a reliable portfolio for this asset combination.")
        return 1

    print(RationaleEngine.format_for_cli(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
