import logging

import numpy as np
import matplotlib.pyplot as plt
from s6model import AssessmentOptions, ParameterSet, make_assessment, plot_assessment, simulate_data

logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

rng = np.random.default_rng(3)
datasets = {}
for year, fm in zip(range(2015, 2020), [0.2, 0.3, 0.45, 0.35, 0.25]):
    true = ParameterSet.from_natural(Fm=fm)
    datasets[f"y{year}"] = simulate_data(true, samplesize=600, rng=rng).sample
# a dataset that cannot be estimated gives a row of NaN
datasets["y2020"] = np.array([])

out = make_assessment(
    datasets,
    a_mean=0.35,
    a_sd=0.175,
    nsample=20,
    probs=np.linspace(0.0, 1.0, 11),
    names=["Fm"],
    options=AssessmentOptions(random_seed=42, verbose=True),
)
print(out)
print(out.ci["FFmsy"])

fig, ax = plot_assessment(out, "FFmsy", use_index=True)
plt.show()
