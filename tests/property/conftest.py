from __future__ import annotations

import os

from hypothesis import HealthCheck, settings

# The filesystem-backed scan property caps its own example count.
settings.register_profile(
    "kernelgov-ci",
    derandomize=True,
    max_examples=200,
    deadline=None,
    suppress_health_check=(HealthCheck.too_slow,),
)
settings.register_profile("kernelgov-dev", max_examples=30, deadline=None)
settings.load_profile(os.environ.get("KERNELGOV_HYPOTHESIS_PROFILE", "kernelgov-ci"))
