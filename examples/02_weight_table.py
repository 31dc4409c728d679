import numpy as np
from s6model import ParameterSet, WeightTable, estimate_param, simulate_data


true = ParameterSet.from_natural(Fm=0.4)
sim = simulate_data(true, samplesize=3000, binsize=100.0, rng=np.random.default_rng(1))

# Binned data as a DataFrame with columns Weight and Freq.
df = sim.table.to_frame()
print(df.head())

res_table = estimate_param(df, names=["Fm"])
res_raw = estimate_param(sim.sample, names=["Fm"])
print("from table:", res_table.estimates)
print("from raw:  ", res_raw.estimates)

# Tables with fractional frequencies work too.
half = WeightTable(weight=sim.table.weight, frequency=0.5 * sim.table.frequency)
print("half-weighted:", estimate_param(half, names=["Fm"]).estimates)
