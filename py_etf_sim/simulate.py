import argparse
import sys
import logging
from datetime import date
from typing import List, Optional

from py_etf_sim.config_loader import load_market_data, load_plan
from py_etf_sim.engine import get_start_month, simulate_plan
from py_etf_sim.export import rows_to_frame, summary_to_frame, write_csv
from py_etf_sim.summary import build_sim_summary, plan_xirr
from py_etf_sim.types import ConfigError, SimConfig

def parse_args(argv: Optional[List[str]] = None) -> SimConfig:
    parser = argparse.ArgumentParser(description="ETF Savings Plan Simulator")
    parser.add_argument("--plan", required=True, help="Plan JSON file")
    parser.add_argument("--market-data", default="./data/market", help="Market cache directory (default: ./data/market)")
    parser.add_argument("--output", default=None, help="CSV file for the monthly rows")
    parser.add_argument("--as-of", default=None, help="Last simulated month, YYYY-MM-DD (default: today)")
    args = parser.parse_args(argv)

    as_of = None
    if args.as_of:
        try:
            as_of = date.fromisoformat(args.as_of)
        except ValueError:
            raise ConfigError(f"Invalid --as-of date: {args.as_of}")

    return SimConfig(
        plan_path=args.plan,
        market_data_dir=args.market_data,
        output_path=args.output,
        as_of=as_of
    )

def run(config: SimConfig) -> None:
    plan, components = load_plan(config.plan_path)
    prices, fx_table = load_market_data(
        config.market_data_dir,
        [c.symbol for c in components],
        base=plan.base_currency
    )

    rows = simulate_plan(plan, components, prices, fx_table, as_of=config.as_of)
    start_month = get_start_month(plan)
    summary = build_sim_summary(rows, start_month, plan)

    if config.output_path:
        write_csv(rows_to_frame(rows), config.output_path, sep=config.csv_separator)
        logging.info(f"Wrote {len(rows)} months to {config.output_path}")

    life = summary.lifetime
    logging.info(f"Plan '{summary.title}' {summary.start_month} -> {summary.end_month}")
    logging.info(f"Contributed {life.contrib} {summary.base_currency} (fees {life.fees}), value {life.market_value}, P&L {life.unrealized_pl} ({life.performance})")

    rate = plan_xirr(rows)
    if rate is not None:
        logging.info(f"XIRR: {rate:.4%}")
    else:
        logging.info("XIRR: n/a")

    years = summary_to_frame(summary)
    if not years.empty:
        logging.info("Per year:\n" + years.to_string(index=False))

def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    try:
        config = parse_args(argv)
        run(config)
    except ConfigError as e:
        logging.error(f"Configuration error: {e}")
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
