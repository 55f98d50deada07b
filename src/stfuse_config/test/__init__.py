# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
The unit test package for stfuse-config.

This also does some test-only related setup.  The expectation is that this
code will never be loaded under real usage.
"""

from sys import (
    stderr,
)


def _configure_hypothesis():
    from os import environ

    from hypothesis import (
        HealthCheck,
        settings,
    )

    # profile names aren't namespaced in any way and Hypothesis allows
    # profile name collisions to pass silently, so keep the
    # "stfuse-config-" prefix on any profile added here.

    settings.register_profile(
        "stfuse-config-fast",
        max_examples=1,
        # see stfuse-config-ci profile below for justification
        suppress_health_check=[
            HealthCheck.too_slow,
        ],
        deadline=60*10*1000,  # _some_ number that's not "forever" (milliseconds)
    )

    settings.register_profile(
        "stfuse-config-ci",
        suppress_health_check=[
            # CPU resources available to CI builds typically varies
            # significantly from run to run making it difficult to determine
            # if "too slow" data generation is a result of the code or the
            # execution environment.
            HealthCheck.too_slow,
        ],
        deadline=60*10*1000,  # _some_ number that's not "forever" (milliseconds)
    )

    profile_name = environ.get("STFUSE_CONFIG_HYPOTHESIS_PROFILE", "default")
    print("Loading Hypothesis profile {}".format(profile_name), file=stderr)
    settings.load_profile(profile_name)
_configure_hypothesis()

from eliot import to_file
to_file(open("eliot.log", "w", encoding="utf8"))
