import argparse
import math
from datetime import datetime

import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from reactorlab.config import RESULTS_DIR, configure_logging
from reactorlab.optimize import (
    OptimizationParameters,
    OptimizationResult,
    ParetoResult,
    Target,
    bioreactor_space,
    composite_objective,
    make_objective,
    optimize,
    optimize_pareto,
)
from reactorlab.report import (
    compare_results,
    plot_convergence,
    plot_pareto_front,
    plot_sensitivity,
)


ALGORITHMS = ["gradient_descent", "genetic_algorithm", "particle_swarm", "bayesian"]


def demo_bioreactor(params: dict[str, float]) -> dict[str, float]:
    """
    Smooth synthetic response surface for a microbial fuel cell reactor.

    Power peaks near 32 C, pH 7.1 and 120 mV; cost rises with mixing,
    voltage and substrate throughput. Stands in for a real simulator or
    experiment.
    """
    t = params["temperature"]
    ph = params["ph"]
    flow = params["flow_rate"]
    mixing = params["mixing_speed"]
    voltage = params["electrode_voltage"]
    substrate = params["substrate_concentration"]

    activity = math.exp(-((t - 32.0) / 6.0) ** 2) * math.exp(-((ph - 7.1) / 0.6) ** 2)
    transfer = 1.0 - math.exp(-mixing / 120.0)
    supply = substrate / (substrate + 1.5) * (1.0 - math.exp(-flow / 2.0))
    drive = math.exp(-((voltage - 120.0) / 70.0) ** 2)

    power = 250.0 * activity * transfer * supply * drive
    efficiency = 100.0 * activity * drive / (1.0 + 0.05 * flow)
    cost = (
        500.0
        + abs(t - 30.0) * 2.0
        + mixing * 0.1
        + voltage * 0.05
        + substrate * flow * 0.01
    )
    durability = 100.0 - 0.15 * abs(t - 30.0) ** 1.5 - 0.02 * voltage - 0.03 * mixing

    return {
        "power": power,
        "efficiency": efficiency,
        "cost": cost,
        "durability": durability,
    }


def run_algorithms(params: OptimizationParameters, objective_name: str) -> dict[str, OptimizationResult]:
    """Run every algorithm on the demo reactor and return results dict."""
    space = bioreactor_space()
    if objective_name == "multi":
        objective = composite_objective(
            weights={"power": 0.5, "efficiency": 0.3, "cost": 0.2},
            maximize={"cost": False},
            targets=(Target("durability", minimum=80.0),),
        )
    else:
        objective = make_objective(objective_name, maximize=objective_name != "cost")

    results = {}
    for name in ALGORITHMS:
        print(f"\nRunning {name}...")
        results[name] = optimize(
            name,
            objective,
            space,
            initial_parameters=None,
            evaluator=demo_bioreactor,
            params=params,
            analyze_ranges=True,
            verbose=True,
        )
        print(f"  {results[name].message}")
    return results


def print_comparison(results: dict[str, OptimizationResult]) -> None:
    """Print metrics comparison table."""
    print("\n" + "=" * 70)
    print("COMPARISON")
    print("=" * 70)

    names = list(results.keys())
    header = f"  {'Metric':<24}" + "".join(f"{n[:14]:>15}" for n in names)
    print(header)
    print(f"  {'-'*24}" + " ".join(f"{'-'*14}" for _ in names))

    table = compare_results(results)
    for metric in ["best_fitness", "improvement", "iterations", "evaluations", "iterations_to_95pct"]:
        values = [float(table.loc[n, metric]) for n in names]
        row = f"  {metric:<24}" + "".join(f"{v:>15.4f}" for v in values)
        print(row)
    print(f"  {'success':<24}" + "".join(f"{str(results[n].success):>15}" for n in names))

    print("\nOptimized parameters:")
    params_df = pd.DataFrame({n: dict(r.optimized_parameters) for n, r in results.items()})
    print(params_df.round(3).to_string())

    best_name = max(names, key=lambda n: results[n].objective_value)
    best = results[best_name]
    print(f"\nBest: {best_name} (fitness {best.objective_value:.4f})")
    print(f"  Metrics: " + ", ".join(f"{k}={v:.3f}" for k, v in best.best_metrics.items()))
    if best.target_misses:
        print(f"  Missed targets: {'; '.join(best.target_misses)}")
    if best.optimal_ranges:
        print("  Optimal ranges (within 5% of best):")
        for name, (low, high) in best.optimal_ranges.items():
            print(f"    {name:<24} {low:>9.3f} - {high:<9.3f}")


def run_pareto(params: OptimizationParameters, n_points: int) -> ParetoResult:
    """Run the power/cost trade-off sweep."""
    print("\n" + "=" * 70)
    print("PARETO SWEEP (power vs cost)")
    print("=" * 70)

    pareto = optimize_pareto(
        ["power", "cost"],
        bioreactor_space(),
        demo_bioreactor,
        algorithm="particle_swarm",
        params=params,
        maximize={"power": True, "cost": False},
        n_points=n_points,
    )
    print(f"{len(pareto.front)} non-dominated solutions from {len(pareto.runs)} runs")
    if not pareto.front.empty:
        print(pareto.front[["power", "cost"]].sort_values("power").round(3).to_string(index=False))
    if pareto.compromise is not None:
        metrics = pareto.compromise.best_metrics
        print(f"\nBest compromise: power={metrics['power']:.3f}, cost={metrics['cost']:.3f}")
    return pareto


def create_plots(
    results: dict[str, OptimizationResult],
    pareto: ParetoResult | None,
) -> list[tuple[str, Figure]]:
    """Generate all plots and return as list of (name, figure) tuples."""
    figures: list[tuple[str, Figure]] = []

    figures.append(("Convergence", plot_convergence(results, title="Algorithm Convergence")))

    best_name = max(results, key=lambda n: results[n].objective_value)
    if results[best_name].sensitivity:
        fig = plot_sensitivity(results[best_name], title=f"Sensitivity ({best_name})")
        figures.append(("Sensitivity", fig))

    if pareto is not None and not pareto.front.empty:
        figures.append(("Pareto", plot_pareto_front(pareto, "cost", "power")))

    return figures


def save_plots(figures: list[tuple[str, Figure]], timestamp: str) -> None:
    """Save all plots to disk."""
    for name, fig in figures:
        filename = f"{name.lower()}_{timestamp}.png"
        fig.savefig(RESULTS_DIR / filename, dpi=150)
        print(f"Saved: results/{filename}")


def save_history(results: dict[str, OptimizationResult], timestamp: str) -> None:
    """Save convergence histories and the summary table to CSV."""
    frames = []
    for name, result in results.items():
        df = result.history_frame()
        df.insert(0, "algorithm", name)
        frames.append(df)
    pd.concat(frames, ignore_index=True).to_csv(RESULTS_DIR / f"history_{timestamp}.csv", index=False)
    print(f"Saved: results/history_{timestamp}.csv")

    compare_results(results).to_csv(RESULTS_DIR / f"summary_{timestamp}.csv")
    print(f"Saved: results/summary_{timestamp}.csv")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Optimize the demo bioreactor with every algorithm")
    parser.add_argument(
        "--objective",
        choices=["power", "efficiency", "cost", "durability", "multi"],
        default="power",
        help="Metric to optimize (cost is minimized; multi = weighted power/efficiency/cost)",
    )
    parser.add_argument("--iterations", type=int, default=100, help="Iteration cap per run")
    parser.add_argument("--population", type=int, default=30, help="GA/PSO population size")
    parser.add_argument("--tolerance", type=float, default=1e-3, help="Relative convergence tolerance")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--workers", type=int, default=1, help="Threads per GA/PSO generation")
    parser.add_argument("--acquisition", choices=["ei", "pi", "ucb"], default="ei")
    parser.add_argument("--pareto", action="store_true", help="Also run the power/cost Pareto sweep")
    parser.add_argument("--pareto-points", type=int, default=10)
    parser.add_argument("--save", action="store_true", help="Write CSV and PNG files to results/")
    parser.add_argument("--show", action="store_true", help="Show plots")
    parser.add_argument("--log-level", default=None, help="Logging level (default from REACTORLAB_LOG_LEVEL)")
    return parser.parse_args()


def main() -> None:
    """Main entry point."""
    args = parse_args()
    configure_logging(args.log_level)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    params = OptimizationParameters(
        max_iterations=args.iterations,
        convergence_tolerance=args.tolerance,
        population_size=args.population,
        seed=args.seed,
        workers=args.workers,
        acquisition=args.acquisition,
    )
    print(f"Objective: {args.objective}, max iterations: {args.iterations}, seed: {args.seed}")

    results = run_algorithms(params, args.objective)
    print_comparison(results)

    pareto = run_pareto(params, args.pareto_points) if args.pareto else None

    if args.save or args.show:
        figures = create_plots(results, pareto)
        if args.save:
            RESULTS_DIR.mkdir(exist_ok=True)
            print()
            save_plots(figures, timestamp)
            save_history(results, timestamp)
        if args.show:
            plt.show()


if __name__ == "__main__":
    main()
