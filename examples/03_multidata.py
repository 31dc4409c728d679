import numpy as np
from s6model import ParameterSet, estimate_multidata, simulate_data


true = ParameterSet.from_natural(Fm=0.3, Winf=3000.0)
rng = np.random.default_rng(2)

survey = simulate_data(true, samplesize=1500, is_survey=True, rng=rng).sample
commercial = simulate_data(true, samplesize=1500, rng=rng).sample

res = estimate_multidata(survey, commercial, names=["Fm", "Winf", "eta_F"])
print(res.summary())
print("Wfs implied by eta_F:", res.params.resolve("eta_F") * res.params.resolve("Winf"))
