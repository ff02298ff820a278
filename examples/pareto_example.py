import math

import matplotlib.pyplot as plt
from reactorlab.optimize import ParameterSpace, ConstraintSet, optimize_pareto, run, make_objective
from reactorlab.report import plot_convergence, plot_pareto_front

# Two-parameter reactor: hotter and faster means more power but more cost
space = ParameterSpace({"temperature": (20.0, 40.0), "flow_rate": (0.1, 10.0)})
constraints = ConstraintSet(space, penalty_weight=5.0)


def evaluate(p):
    t, flow = p["temperature"], p["flow_rate"]
    power = 100 * math.exp(-((t - 34) / 8) ** 2) * (1 - math.exp(-flow / 3))
    cost = 500 + 2 * abs(t - 25) + 15 * flow
    return {"power": power, "cost": cost}


# --- Single-objective runs ---
params = {"max_iterations": 60, "population_size": 30, "seed": 7}
results = {
    name: run(name, make_objective("power"), constraints, None, evaluate, params)
    for name in ["gradient_descent", "particle_swarm", "bayesian"]
}
for name, result in results.items():
    print(f"{name:<18} power={result.objective_value:8.3f}  {dict(result.optimized_parameters)}")

# --- Power vs cost trade-off ---
pareto = optimize_pareto(
    ["power", "cost"],
    constraints,
    evaluate,
    algorithm="particle_swarm",
    params=params,
    maximize={"power": True, "cost": False},
    n_points=15,
)
print(pareto)
print(pareto.front[["power", "cost", "temperature", "flow_rate"]].round(2).to_string(index=False))

# --- Plot ---
plot_convergence(results, title="Maximize Power")
plot_pareto_front(pareto, x_metric="cost", y_metric="power")
plt.show()
