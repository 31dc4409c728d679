"""s6model public API."""
from ._version import __version__
from .assessment import AssessmentOptions, EstimationFailure, estimate_once, make_assessment
from .estimation import (
    ConvergenceWarning,
    SingularHessianError,
    estimate_multidata,
    estimate_param,
    infer_uncertainty,
)
from .inference import neg_loglike, neg_loglike_multidata
from .inputs import DataBundle, InvalidDataError, Sample, WeightTable, as_observations
from .model import SizeSpectrum, calc_fmsy, pdf, simulate_data
from .params import ParameterSet, UnknownParameterError
from .plotting import plot_assessment, plot_fit
from .run import Assessment, EstimationResult
from .weightlength import add_weight, fit_wl, l2w

__all__ = [
    "__version__",
    "Assessment",
    "AssessmentOptions",
    "ConvergenceWarning",
    "DataBundle",
    "EstimationFailure",
    "EstimationResult",
    "InvalidDataError",
    "ParameterSet",
    "Sample",
    "SingularHessianError",
    "SizeSpectrum",
    "UnknownParameterError",
    "WeightTable",
    "add_weight",
    "as_observations",
    "calc_fmsy",
    "estimate_multidata",
    "estimate_once",
    "estimate_param",
    "fit_wl",
    "infer_uncertainty",
    "l2w",
    "make_assessment",
    "neg_loglike",
    "neg_loglike_multidata",
    "pdf",
    "plot_assessment",
    "plot_fit",
    "simulate_data",
]
