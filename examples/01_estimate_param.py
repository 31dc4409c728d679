import numpy as np
import matplotlib.pyplot as plt
from s6model import ParameterSet, estimate_param, plot_fit, simulate_data


true = ParameterSet.from_natural(Fm=0.3, Winf=4000.0, Wfs=300.0)

rng = np.random.default_rng(0)
sim = simulate_data(true, samplesize=2000, rng=rng)

# start/lower/upper are natural value / scale; the Winf start comes from the data.
res = estimate_param(sim.sample, names=["Fm", "Winf", "Wfs"])

print(res.summary(digits=4))
print(res.ci)

fig, ax = plot_fit(res, sim.sample, bins=60)
ax.set_title("Commercial catch, simulated")
ax.legend(loc="center right")
plt.show()
