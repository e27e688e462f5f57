# main.py
import argparse
import json
import logging
import os

from colorama import Fore, Style, init

from winefeatures.diagnostics import Diagnostics
from winefeatures.engine import FeatureEngine
from winefeatures.lifecycle import LifecycleError, advance
from winefeatures.models import EventContext
from winefeatures.notifications import RecordingNotifier
from winefeatures.scenarios import (
    SCENARIO_DEFINITIONS, build_batches, events_at, generate_scenarios, get_scenario,
    start_calendar,
)

init(autoreset=True)

logger = logging.getLogger(__name__)


def print_log(log: str):
    if log.startswith("FEATURE:"):
        print(f"{Fore.RED}{log}{Style.RESET_ALL}")
    elif log.startswith("RISK:"):
        print(f"{Fore.YELLOW}{log}{Style.RESET_ALL}")
    elif log.startswith("PRESTIGE:"):
        print(f"{Fore.LIGHTBLACK_EX}{log}{Style.RESET_ALL}")
    else:
        print(log)


def run_simulation(scenario_id="V-01", total_weeks=None, seed=None, verbose=False):
    scenario = get_scenario(scenario_id)
    if verbose:
        print(f"{Fore.CYAN}Initializing vintage scenario: {scenario_id} ({scenario['name']}){Style.RESET_ALL}")

    engine = FeatureEngine(seed=scenario['seed'] if seed is None else seed,
                           notifier=RecordingNotifier())
    batches = build_batches(scenario)
    by_id = {b.id: b for b in batches}
    calendar = start_calendar(scenario)
    diagnostics = Diagnostics(scenario['id'], engine.effects)

    weeks = total_weeks or scenario['weeks']
    for offset in range(weeks):
        logs_before = len(engine.log_history)

        # Production events scheduled for this week run before the tick
        for event in events_at(scenario, offset):
            batch = by_id[event['batch']]
            context = EventContext(**event['context'])
            if event['event'] == 'harvest':
                context = context.model_copy(update={'season': calendar.season, 'week': calendar.week})
            try:
                advance(batch, event['event'])
            except LifecycleError as e:
                logger.error("%s", e)
                continue
            outcomes = engine.on_event(batch, event['event'], context, calendar)
            diagnostics.record_event(calendar.label(), batch.id, outcomes)

        event_logs = engine.log_history[logs_before:]
        report = engine.process_week(batches, calendar)
        diagnostics.record_week(batches, report)

        if verbose:
            if event_logs or report.logs:
                print(f"\n{Fore.YELLOW}--- {calendar.label().upper()} ---{Style.RESET_ALL}")
            for log in event_logs + report.logs:
                print_log(log)

        calendar = calendar.advance()

    # Sell what made it to bottle
    for sale in scenario.get('sales', []):
        batch = by_id[sale['batch']]
        if batch.state != 'bottled':
            continue
        impacts = engine.record_sale(batch, sale['volume'], sale['value'])
        if verbose:
            for impact in impacts:
                print_log(f"PRESTIGE: {impact.magnitude:+.3f} ({impact.scope}) from selling "
                          f"{impact.feature_id} wine of batch {batch.id}.")

    prestige = {'company': engine.ledger.total('company')}
    for vineyard in sorted({b.vineyard_id for b in batches}):
        prestige[vineyard] = engine.ledger.total('vineyard', vineyard)
    report = diagnostics.generate_report(batches, prestige)

    if verbose:
        print(f"\n{Fore.GREEN}Simulation Complete.{Style.RESET_ALL}")
        print("\n=== VINTAGE REPORT ===")
        for batch_id, summary in report['batches'].items():
            features = ", ".join(f"{k} ({v:.2f})" for k, v in summary['features'].items()) or "none"
            print(f"{batch_id}: {summary['state']:<16} quality {summary['born_quality']:.2f} -> "
                  f"{summary['quality']:.2f} | features: {features}")
            for segment, mult in summary['price_multipliers'].items():
                color = Fore.GREEN if mult >= 1.0 else Fore.RED
                print(f"    {segment:<18} {color}x{mult:.3f}{Style.RESET_ALL}")
        print(f"Warnings: {report['warnings']} | Manifestations: {len(report['manifestations'])}")
        print(f"Company prestige: {prestige['company']:+.3f}")
        print("======================")

    return report


def run_baseline(seed=None, export=False):
    print(f"{Fore.MAGENTA}=== RUNNING ALL VINTAGE SCENARIOS ==={Style.RESET_ALL}")
    if export:
        generate_scenarios()
        if not os.path.exists("results"):
            os.makedirs("results")

    print(f"{'Scenario':<20} | {'Mean Q':<8} | {'Final Q':<8} | {'Features':<8} | {'Prestige':<8}")
    print("-" * 66)

    results = {}
    for s_def in SCENARIO_DEFINITIONS:
        report = run_simulation(s_def['id'], seed=seed, verbose=False)
        color = Fore.GREEN if report['prestige']['company'] >= 0 else Fore.RED
        print(f"{s_def['id']:<20} | {report['mean_quality']:<8.3f} | {report['final_quality']:<8.3f} | "
              f"{len(report['manifestations']):<8} | {color}{report['prestige']['company']:+.3f}{Style.RESET_ALL}")
        results[s_def['id']] = report

    if export:
        for s_id, report in results.items():
            with open(f"results/{s_id}.json", "w") as f:
                json.dump(report, f, indent=2)
        print(f"\n{Fore.CYAN}Results saved to results/ directory.{Style.RESET_ALL}")
    return results


def main(argv=None):
    parser = argparse.ArgumentParser(description="Simulate wine feature risk across a vintage")
    parser.add_argument("--scenario", type=str, default=None,
                        help="Run a single scenario (e.g. V-01); default runs all")
    parser.add_argument("--weeks", type=int, default=None, help="Override the number of simulated weeks")
    parser.add_argument("--seed", type=int, default=None, help="Override the scenario random seed")
    parser.add_argument("--verbose", action="store_true", help="Print weekly logs and the final report")
    parser.add_argument("--export", action="store_true", help="Write scenario and result JSON files")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.scenario:
        report = run_simulation(args.scenario, total_weeks=args.weeks, seed=args.seed, verbose=True)
        if args.export:
            generate_scenarios()
            if not os.path.exists("results"):
                os.makedirs("results")
            with open(f"results/{args.scenario}.json", "w") as f:
                json.dump(report, f, indent=2)
    else:
        run_baseline(seed=args.seed, export=args.export)


if __name__ == "__main__":
    main()
