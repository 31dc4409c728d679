import numpy as np
import pandas as pd
from s6model import add_weight, as_observations, fit_wl


rng = np.random.default_rng(4)
length = rng.uniform(10.0, 90.0, size=200)
weight = 0.009 * length**3.05 * np.exp(rng.normal(0.0, 0.05, size=length.size))
survey = pd.DataFrame({"Length": length, "Weight": weight})

coef = fit_wl(survey)
print("a = %.4g, b = %.4g" % (coef["a"], coef["b"]))

# Commercial lengths only: add weights from the survey relationship.
catch = pd.DataFrame({"Length": rng.uniform(20.0, 90.0, size=50)})
catch = add_weight(catch, coef["a"], coef["b"])
print(catch.head())
print(as_observations(catch["Weight"]))
